"""
Payment gateway interface.
The checkout flow only needs "charge" and "refund"; the wire protocol of a
real gateway lives behind an implementation of this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ChargeResult:
    """Gateway answer to a charge request."""

    success: bool
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class PaymentGateway(ABC):
    """
    Interface for payment gateways.

    Implementations:
    - SimulatedPaymentGateway: in-process stand-in with configurable latency
      and a declining card prefix
    """

    @abstractmethod
    async def charge(self, amount: Decimal, method: str, fields: dict) -> ChargeResult:
        """
        Charge `amount` using the given payment method.

        Returns:
            ChargeResult with success=False for a decline.

        Raises:
            Any exception when the gateway could not be reached; the caller
            treats that as "no response received".
        """
        pass

    @abstractmethod
    async def refund(self, transaction_id: str, amount: Decimal) -> None:
        """
        Refund a previously successful charge.

        Args:
            transaction_id: Id returned by `charge`
            amount: Amount to refund
        """
        pass
