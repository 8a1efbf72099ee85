"""
Background sweeper for expired seat holds.

Reads reclaim expired holds lazily, but a showtime nobody looks at would keep
its stale holds forever. The sweeper runs on an interval inside the API
process and, on every pass:

  1. returns expired held seats to available (per showtime, under its lock)
  2. cancels pending bookings whose hold is gone, so an interrupted checkout
     never leaves a booking stuck in pending
"""

import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cinema_booking.core.clock import utcnow
from cinema_booking.core.logging import get_logger
from cinema_booking.services import booking_ledger, seat_inventory

logger = get_logger(__name__)


class HoldSweeper:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], interval_seconds: float):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    async def sweep_once(self, now: Optional[datetime] = None) -> dict:
        """Run one reclaim + reconcile pass. Returns what it changed."""
        now = now or utcnow()
        async with self.session_factory() as db:
            reclaimed = await seat_inventory.reclaim_expired(db, now=now)
            cancelled = await booking_ledger.cancel_stale_pending(db, now=now)

        if reclaimed or cancelled:
            logger.info("sweep_completed", seats_reclaimed=reclaimed, bookings_cancelled=cancelled)
        return {"seats_reclaimed": reclaimed, "bookings_cancelled": cancelled}

    async def _run(self) -> None:
        logger.info("hold_sweeper_started", interval_seconds=self.interval_seconds)
        while not self._stopping.is_set():
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("sweep_failed", error=str(e), exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("hold_sweeper_stopped")

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
