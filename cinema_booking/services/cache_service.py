"""
Redis cache for showtime listings.

Only the "showtimes of a movie" listing is cached, one key per movie and
listing mode:

    showtimes:movie=<movie_id>&upcoming=<True|False>

Seat maps and holds are never cached; seat state changes on every hold.

Catalog writes drop the keys of the movies they touch. When the affected
movies are unknown every listing key is dropped via SCAN. REDIS_CACHE_TTL
bounds how stale a listing can get if an invalidation is lost.

Redis is optional. Disabled or unreachable Redis turns every read into a miss
and every write into a no-op. After a failed connect the next attempt waits
REDIS_RETRY_SECONDS so a dead Redis does not cost a ping per request.
"""

import json
import time
from typing import Iterable, Optional

import redis.asyncio as redis
from cinema_booking.core.config import get_settings
from cinema_booking.core.logging import get_logger
from cinema_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SHOWTIME_KEY_PREFIX = "showtimes:"
LISTING_MODES = (True, False)

_redis_client: Optional[redis.Redis] = None
_retry_after: float = 0.0


async def get_redis() -> Optional[redis.Redis]:
    """Shared client, or None when Redis is disabled or recently unreachable."""
    global _redis_client, _retry_after

    if not settings.REDIS_ENABLED:
        return None
    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after:
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        _retry_after = time.monotonic() + settings.REDIS_RETRY_SECONDS
        logger.error("redis_connection_failed", error=str(e), retry_in=settings.REDIS_RETRY_SECONDS)
        await client.close()
        return None

    _redis_client = client
    logger.info("redis_connected", url=settings.REDIS_URL)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.close()
        _redis_client = None


def listing_key(movie_id: int, upcoming_only: bool) -> str:
    return f"{SHOWTIME_KEY_PREFIX}movie={movie_id}&upcoming={upcoming_only}"


async def get_cached_showtimes(movie_id: int, upcoming_only: bool) -> Optional[dict]:
    client = await get_redis()
    if client is None:
        return None

    key = listing_key(movie_id, upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data is None:
        return None
    return json.loads(data)


async def set_cached_showtimes(movie_id: int, upcoming_only: bool, data: dict) -> None:
    """Store a JSON-ready listing for REDIS_CACHE_TTL seconds."""
    client = await get_redis()
    if client is None:
        return

    key = listing_key(movie_id, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data))
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_showtime_cache(movie_ids: Optional[Iterable[int]] = None) -> int:
    """
    Drop cached listings of the given movies, or of every movie when
    movie_ids is None. Returns the number of keys deleted.
    """
    client = await get_redis()
    if client is None:
        return 0

    try:
        if movie_ids is None:
            keys = [key async for key in client.scan_iter(match=f"{SHOWTIME_KEY_PREFIX}*", count=100)]
        else:
            keys = [listing_key(movie_id, mode) for movie_id in set(movie_ids) for mode in LISTING_MODES]
        deleted = await client.delete(*keys) if keys else 0
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))
        return 0

    logger.info("showtime_cache_invalidated", keys_deleted=deleted)
    return deleted


async def get_cache_stats() -> dict:
    """Cache status for /health: hit rate and number of cached listings."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        listings = 0
        async for _ in client.scan_iter(match=f"{SHOWTIME_KEY_PREFIX}*", count=100):
            listings += 1
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        "cached_listings": listings,
    }
