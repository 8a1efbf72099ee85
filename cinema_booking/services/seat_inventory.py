"""
Seat inventory: the single source of truth for seat state per showtime.

CONCURRENCY STRATEGY: Per-showtime critical section + conditional UPDATE
========================================================================

Problem:
  Two buyers select overlapping seats of the same showtime at the same time.
  Both read "A2 is available", both write "A2 is held". Result: double sale.

Solution:
  1. Every mutation of a showtime's seats runs inside that showtime's
     critical section: an in-process asyncio.Lock, plus a row lock on the
     showtime itself (SELECT ... FOR UPDATE) so that several API processes
     sharing one database serialize the same way.
  2. The hold itself is a single conditional statement:

       UPDATE showtime_seats SET state = 'held', holder_token = :token, ...
       WHERE showtime_id = :id AND seat_id IN (:seats) AND state = 'available'

     If rows_affected != len(seats), some seat was taken: the transaction is
     rolled back and the caller gets SeatUnavailable with the conflicting
     seats. Partial holds are never committed.
  3. Each public operation commits before leaving the critical section, so
     the next holder of the lock always sees the latest state.

  Reads (get_seat_map) are one SELECT and never take the lock unless expired
  holds have to be reclaimed first.

  Functions with a `_locked` suffix expect the caller to hold the showtime
  lock and to commit; the payment coordinator and booking ledger use them to
  combine seat changes with booking changes in one transaction.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.clock import ensure_utc, utcnow
from cinema_booking.core.config import get_settings
from cinema_booking.core.errors import (
    HoldExpired, SeatUnavailable, ShowtimeNotFound, ValidationError, seat_sort_key,
)
from cinema_booking.core.logging import get_logger
from cinema_booking.core.metrics import record_hold_attempt, seats_reclaimed
from cinema_booking.models.hall import Hall
from cinema_booking.models.seat import HoldStatus, SeatHold, SeatState, ShowtimeSeat
from cinema_booking.models.showtime import Showtime

logger = get_logger(__name__)
settings = get_settings()

MAX_SEATS_PER_HOLD = 20


class ShowtimeLockRegistry:
    """
    One asyncio.Lock per showtime.

    Locks belong to the event loop that created them; the registry starts
    over when it is used from a different loop.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _lock_for(self, showtime_id: int) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._locks = {}
            self._loop = loop
        lock = self._locks.get(showtime_id)
        if lock is None:
            lock = self._locks[showtime_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def acquire(self, *showtime_ids: int) -> AsyncIterator[None]:
        """Acquire the locks of several showtimes in id order."""
        locks = [self._lock_for(showtime_id) for showtime_id in sorted(set(showtime_ids))]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


showtime_locks = ShowtimeLockRegistry()


def normalize_seat_ids(seat_ids: Iterable[str]) -> list[str]:
    """Upper-case, strip and de-duplicate seat ids, keeping hall order."""
    seats = {seat.strip().upper() for seat in seat_ids if seat and seat.strip()}
    if not seats:
        raise ValidationError("At least one seat must be selected")
    if len(seats) > MAX_SEATS_PER_HOLD:
        raise ValidationError(f"At most {MAX_SEATS_PER_HOLD} seats can be held at once")
    return sorted(seats, key=seat_sort_key)


def effective_ttl(ttl_seconds: Optional[int]) -> int:
    if ttl_seconds is None:
        return settings.HOLD_TTL_SECONDS
    if ttl_seconds <= 0:
        raise ValidationError("ttl_seconds must be positive")
    return min(ttl_seconds, settings.HOLD_TTL_MAX_SECONDS)


async def lock_showtime(db: AsyncSession, showtime_id: int) -> Optional[Showtime]:
    """Row-lock the showtime for the rest of the current transaction."""
    result = await db.execute(
        select(Showtime)
        .where(Showtime.id == showtime_id)
        .with_for_update(of=Showtime)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def get_hold(db: AsyncSession, holder_token: str) -> Optional[SeatHold]:
    result = await db.execute(
        select(SeatHold)
        .where(SeatHold.holder_token == holder_token)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def hold_is_live(hold: Optional[SeatHold], now: datetime) -> bool:
    return (
        hold is not None
        and hold.status == HoldStatus.ACTIVE.value
        and ensure_utc(hold.expires_at) > now
    )


def initialize_inventory(db: AsyncSession, showtime: Showtime, hall: Hall) -> int:
    """Create one available seat row per hall seat. Caller commits."""
    seats = [
        ShowtimeSeat(showtime_id=showtime.id, seat_id=seat_id, state=SeatState.AVAILABLE.value)
        for seat_id in hall.seat_ids()
    ]
    db.add_all(seats)
    return len(seats)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_seat_map(
    db: AsyncSession,
    showtime_id: int,
    now: Optional[datetime] = None,
) -> dict[str, SeatState]:
    """
    Snapshot of every seat's state, in hall order.
    Expired holds are reclaimed first so the map never shows stale holds.
    """
    now = now or utcnow()

    exists = await db.scalar(select(Showtime.id).where(Showtime.id == showtime_id))
    if exists is None:
        raise ShowtimeNotFound(showtime_id)

    if await _has_expired_holds(db, showtime_id, now):
        await reclaim_expired(db, now=now, showtime_id=showtime_id)

    result = await db.execute(
        select(ShowtimeSeat.seat_id, ShowtimeSeat.state)
        .where(ShowtimeSeat.showtime_id == showtime_id)
        .order_by(ShowtimeSeat.id)
    )
    return {seat_id: SeatState(state) for seat_id, state in result.all()}


async def _has_expired_holds(db: AsyncSession, showtime_id: int, now: datetime) -> bool:
    count = await db.scalar(
        select(func.count())
        .select_from(ShowtimeSeat)
        .where(
            ShowtimeSeat.showtime_id == showtime_id,
            ShowtimeSeat.state == SeatState.HELD.value,
            ShowtimeSeat.expires_at <= now,
        )
    )
    return bool(count)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def attempt_hold(
    db: AsyncSession,
    showtime_id: int,
    seat_ids: Iterable[str],
    user_id: str,
    ttl_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SeatHold:
    """
    Hold every requested seat or none of them.

    Raises:
        ValidationError: empty selection, unknown seats, unknown or started showtime
        SeatUnavailable: some seat is held by another token or already booked
    """
    now = now or utcnow()
    try:
        requested = normalize_seat_ids(seat_ids)
        ttl = effective_ttl(ttl_seconds)
    except ValidationError:
        record_hold_attempt("invalid")
        raise

    async with showtime_locks.acquire(showtime_id):
        try:
            showtime = await lock_showtime(db, showtime_id)
            if showtime is None:
                raise ValidationError(f"Showtime {showtime_id} does not exist")
            if showtime.starts_at <= now:
                raise ValidationError(f"Showtime {showtime_id} has already started")

            await _reclaim_expired_locked(db, now, showtime_id)

            known = set(
                (
                    await db.execute(
                        select(ShowtimeSeat.seat_id).where(
                            ShowtimeSeat.showtime_id == showtime_id,
                            ShowtimeSeat.seat_id.in_(requested),
                        )
                    )
                ).scalars()
            )
            unknown = [seat for seat in requested if seat not in known]
            if unknown:
                raise ValidationError(f"Unknown seats for showtime {showtime_id}: {', '.join(unknown)}")

            holder_token = uuid.uuid4().hex
            expires_at = now + timedelta(seconds=ttl)

            # Atomic check-and-set across the whole selection
            update_result = await db.execute(
                update(ShowtimeSeat)
                .where(
                    ShowtimeSeat.showtime_id == showtime_id,
                    ShowtimeSeat.seat_id.in_(requested),
                    ShowtimeSeat.state == SeatState.AVAILABLE.value,
                )
                .values(
                    state=SeatState.HELD.value,
                    holder_token=holder_token,
                    expires_at=expires_at,
                )
                .execution_options(synchronize_session=False)
            )

            if update_result.rowcount != len(requested):
                conflicting = await _unavailable_seats(db, showtime_id, requested, holder_token)
                raise SeatUnavailable(conflicting)

            hold = SeatHold(
                holder_token=holder_token,
                showtime_id=showtime_id,
                user_id=user_id,
                seat_ids=requested,
                status=HoldStatus.ACTIVE.value,
                expires_at=expires_at,
            )
            db.add(hold)
            await db.commit()
        except SeatUnavailable as e:
            await db.rollback()
            record_hold_attempt("unavailable")
            logger.warning(
                "hold_rejected",
                showtime_id=showtime_id,
                requested=requested,
                conflicting=e.conflicting_seats,
            )
            raise
        except ValidationError:
            await db.rollback()
            record_hold_attempt("invalid")
            raise
        except Exception:
            await db.rollback()
            raise

    record_hold_attempt("held")
    logger.info(
        "seats_held",
        showtime_id=showtime_id,
        seats=requested,
        holder_token=holder_token,
        expires_at=expires_at.isoformat(),
    )
    return hold


async def _unavailable_seats(
    db: AsyncSession,
    showtime_id: int,
    requested: list[str],
    own_token: str,
) -> list[str]:
    """Seats of the request that some other hold or booking owns."""
    result = await db.execute(
        select(ShowtimeSeat.seat_id).where(
            ShowtimeSeat.showtime_id == showtime_id,
            ShowtimeSeat.seat_id.in_(requested),
            ShowtimeSeat.state != SeatState.AVAILABLE.value,
            (ShowtimeSeat.holder_token.is_(None)) | (ShowtimeSeat.holder_token != own_token),
        )
    )
    return list(result.scalars())


async def release_hold(db: AsyncSession, holder_token: str) -> int:
    """
    Return every seat held by the token to available.
    Idempotent: an unknown, released or expired token is a no-op.
    """
    hold = await get_hold(db, holder_token)
    if hold is None:
        logger.debug("release_unknown_hold", holder_token=holder_token)
        return 0

    async with showtime_locks.acquire(hold.showtime_id):
        try:
            await lock_showtime(db, hold.showtime_id)
            released = await release_hold_locked(db, holder_token)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    if released:
        logger.info("hold_released", holder_token=holder_token, seats_released=released)
    return released


async def release_hold_locked(db: AsyncSession, holder_token: str) -> int:
    result = await db.execute(
        update(ShowtimeSeat)
        .where(
            ShowtimeSeat.holder_token == holder_token,
            ShowtimeSeat.state == SeatState.HELD.value,
        )
        .values(state=SeatState.AVAILABLE.value, holder_token=None, expires_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(SeatHold)
        .where(
            SeatHold.holder_token == holder_token,
            SeatHold.status == HoldStatus.ACTIVE.value,
        )
        .values(status=HoldStatus.RELEASED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def confirm_hold(
    db: AsyncSession,
    holder_token: str,
    booking_id: int,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Turn every seat of a live hold into a booked seat of `booking_id`.

    Raises:
        HoldExpired: the hold is unknown, no longer active, or past its expiry.
            An expired hold's seats are reclaimed before raising.
    """
    now = now or utcnow()
    hold = await get_hold(db, holder_token)
    if hold is None:
        raise HoldExpired(holder_token)

    async with showtime_locks.acquire(hold.showtime_id):
        try:
            await lock_showtime(db, hold.showtime_id)
            seats = await confirm_hold_locked(db, holder_token, booking_id, now)
        except HoldExpired:
            # Persist the reclaim of the stale hold
            await db.commit()
            raise
        except Exception:
            await db.rollback()
            raise
        await db.commit()
    return seats


async def confirm_hold_locked(
    db: AsyncSession,
    holder_token: str,
    booking_id: int,
    now: datetime,
) -> list[str]:
    hold = await get_hold(db, holder_token)
    if hold is None or hold.status != HoldStatus.ACTIVE.value:
        raise HoldExpired(holder_token)

    if ensure_utc(hold.expires_at) <= now:
        await _reclaim_expired_locked(db, now, hold.showtime_id)
        logger.info("confirm_rejected_expired", holder_token=holder_token, showtime_id=hold.showtime_id)
        raise HoldExpired(holder_token)

    result = await db.execute(
        update(ShowtimeSeat)
        .where(
            ShowtimeSeat.holder_token == holder_token,
            ShowtimeSeat.state == SeatState.HELD.value,
        )
        .values(
            state=SeatState.BOOKED.value,
            holder_token=None,
            expires_at=None,
            booking_id=booking_id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != len(hold.seat_ids):
        # Seats went missing from the hold; never book a partial selection
        raise HoldExpired(holder_token)

    hold.status = HoldStatus.CONFIRMED.value
    await db.flush()

    logger.info(
        "hold_confirmed",
        holder_token=holder_token,
        booking_id=booking_id,
        seats=hold.seat_ids,
    )
    return list(hold.seat_ids)


async def release_booked_seats_locked(db: AsyncSession, booking_id: int) -> int:
    """Free the seats a booking had bought. Caller holds the lock and commits."""
    result = await db.execute(
        update(ShowtimeSeat)
        .where(
            ShowtimeSeat.booking_id == booking_id,
            ShowtimeSeat.state == SeatState.BOOKED.value,
        )
        .values(state=SeatState.AVAILABLE.value, booking_id=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def reclaim_expired(
    db: AsyncSession,
    now: Optional[datetime] = None,
    showtime_id: Optional[int] = None,
) -> int:
    """
    Return every expired held seat to available.

    Each showtime is reclaimed under its own lock, so a reclaim can never
    interleave with a confirm of the same showtime.
    """
    now = now or utcnow()

    if showtime_id is not None:
        showtime_ids = [showtime_id]
    else:
        result = await db.execute(
            select(ShowtimeSeat.showtime_id)
            .where(
                ShowtimeSeat.state == SeatState.HELD.value,
                ShowtimeSeat.expires_at <= now,
            )
            .distinct()
        )
        showtime_ids = list(result.scalars())

    total = 0
    for current_id in showtime_ids:
        async with showtime_locks.acquire(current_id):
            try:
                await lock_showtime(db, current_id)
                total += await _reclaim_expired_locked(db, now, current_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
    return total


async def _reclaim_expired_locked(db: AsyncSession, now: datetime, showtime_id: int) -> int:
    seat_result = await db.execute(
        update(ShowtimeSeat)
        .where(
            ShowtimeSeat.showtime_id == showtime_id,
            ShowtimeSeat.state == SeatState.HELD.value,
            ShowtimeSeat.expires_at <= now,
        )
        .values(state=SeatState.AVAILABLE.value, holder_token=None, expires_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(SeatHold)
        .where(
            SeatHold.showtime_id == showtime_id,
            SeatHold.status == HoldStatus.ACTIVE.value,
            SeatHold.expires_at <= now,
        )
        .values(status=HoldStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )

    reclaimed = seat_result.rowcount
    if reclaimed:
        seats_reclaimed.inc(reclaimed)
        logger.info("holds_reclaimed", showtime_id=showtime_id, seats=reclaimed)
    return reclaimed
