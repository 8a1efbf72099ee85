"""
Identity provider interface.
The booking core only consumes an opaque acting identity; issuing and
storing identities belongs to the provider behind this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class Actor:
    """The user or administrator performing an operation."""

    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_access(self, owner_id: str) -> bool:
        return self.is_admin or self.user_id == owner_id


SYSTEM_ACTOR = Actor(user_id=SYSTEM_ACTOR_ID, role=ROLE_ADMIN)


class IdentityProvider(ABC):
    """
    Resolves a bearer credential into an Actor.

    Implementations:
    - JWTIdentityProvider: verifies signed tokens carrying `sub` and `role`
    """

    @abstractmethod
    def resolve(self, credential: str) -> Actor | None:
        """
        Return the actor for a credential, or None if it is invalid or expired.
        """
        pass
