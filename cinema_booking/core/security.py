"""
Bearer token verification and FastAPI dependencies for the acting identity.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from cinema_booking.core.clock import utcnow
from cinema_booking.core.config import get_settings
from cinema_booking.core.logging import get_logger
from cinema_booking.services.interfaces.identity import ROLE_USER, Actor, IdentityProvider

logger = get_logger(__name__)
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


class JWTIdentityProvider(IdentityProvider):
    """Verifies HS256 tokens signed with the shared SECRET_KEY."""

    def __init__(self, secret_key: str, algorithm: str):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def resolve(self, credential: str) -> Optional[Actor]:
        try:
            payload = jwt.decode(credential, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning("token_rejected", error=str(e))
            return None

        subject = payload.get("sub")
        if not subject:
            return None
        return Actor(user_id=str(subject), role=payload.get("role", ROLE_USER))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the way the identity provider does. Used by tests and load scripts."""
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


_provider: Optional[IdentityProvider] = None


def get_identity_provider() -> IdentityProvider:
    global _provider
    if _provider is None:
        _provider = JWTIdentityProvider(settings.SECRET_KEY, settings.ALGORITHM)
    return _provider


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Actor:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor = provider.resolve(credentials.credentials)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return actor
