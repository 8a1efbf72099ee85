"""
Payment gateway factory.
Configures which gateway implementation checkout uses.
"""

from typing import Optional

from cinema_booking.core.config import get_settings
from cinema_booking.services.interfaces.payment_gateway import PaymentGateway
from cinema_booking.services.interfaces.simulated_gateway import SimulatedPaymentGateway


def build_payment_gateway() -> PaymentGateway:
    """
    Build the configured gateway.

    Only the simulated gateway ships with the service; a real integration
    plugs in here.
    """
    settings = get_settings()
    return SimulatedPaymentGateway(
        latency_ms=settings.PAYMENT_GATEWAY_LATENCY_MS,
        decline_card_prefix=settings.PAYMENT_DECLINE_CARD_PREFIX,
    )


# Singleton instance
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton. Used as a FastAPI dependency."""
    global _gateway
    if _gateway is None:
        _gateway = build_payment_gateway()
    return _gateway
