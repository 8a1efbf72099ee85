"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from cinema_booking.api.routes import admin, bookings, holds, showtimes

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(showtimes.router)
api_router.include_router(holds.router)
api_router.include_router(bookings.router)
api_router.include_router(admin.router)
