"""
Cinema Booking API - Main Application Entry Point

Seat reservation and booking service:
- All-or-nothing seat holds with a per-showtime critical section
- Checkout that either confirms seats, payment and booking together or rolls back
- Background sweeper that reclaims expired holds
- Redis caching for showtime listings, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cinema_booking.core.config import get_settings
from cinema_booking.core.logging import setup_logging, get_logger
from cinema_booking.core.metrics import metrics_endpoint
from cinema_booking.api.exception_handlers import register_exception_handlers
from cinema_booking.api.router import api_router
from cinema_booking.api.middleware import RequestLoggingMiddleware
from cinema_booking.db.session import AsyncSessionLocal
from cinema_booking.services.cache_service import get_redis, close_redis, get_cache_stats
from cinema_booking.services.hold_sweeper import HoldSweeper

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    sweeper = None
    if settings.HOLD_SWEEPER_ENABLED:
        sweeper = HoldSweeper(AsyncSessionLocal, settings.HOLD_SWEEP_INTERVAL_SECONDS)
        sweeper.start()
    app.state.hold_sweeper = sweeper

    yield

    if sweeper is not None:
        await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Cinema seat reservation and booking API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    sweeper = getattr(app.state, "hold_sweeper", None)
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "hold_sweeper": "running" if sweeper is not None and sweeper.running else "stopped",
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()
