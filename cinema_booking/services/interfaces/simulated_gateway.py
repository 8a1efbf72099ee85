"""
Simulated payment gateway - no network calls.
Approves every charge except cards starting with the configured decline prefix.
"""

import asyncio
import uuid
from decimal import Decimal

from cinema_booking.core.logging import get_logger
from cinema_booking.services.interfaces.payment_gateway import ChargeResult, PaymentGateway

logger = get_logger(__name__)


class SimulatedPaymentGateway(PaymentGateway):
    """
    Stand-in gateway for development, tests and load runs.

    Use when:
    - No real gateway credentials are configured
    - Measuring hold contention without external latency noise
    """

    def __init__(self, latency_ms: int = 0, decline_card_prefix: str = ""):
        self.latency_ms = latency_ms
        self.decline_card_prefix = decline_card_prefix

    async def charge(self, amount: Decimal, method: str, fields: dict) -> ChargeResult:
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)

        card_number = "".join(ch for ch in str(fields.get("card_number") or "") if ch.isdigit())
        if self.decline_card_prefix and card_number.startswith(self.decline_card_prefix):
            logger.info("charge_declined", method=method, amount=str(amount))
            return ChargeResult(success=False, reason="card_declined")

        transaction_id = f"sim_{uuid.uuid4().hex[:16]}"
        logger.info("charge_approved", method=method, amount=str(amount), transaction_id=transaction_id)
        return ChargeResult(success=True, transaction_id=transaction_id)

    async def refund(self, transaction_id: str, amount: Decimal) -> None:
        logger.info("charge_refunded", transaction_id=transaction_id, amount=str(amount))
