"""
Renders domain errors as JSON responses.

Body shape: {"detail": <message>, "code": <ErrorCode>, ...extra fields}
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cinema_booking.core.errors import DomainError
from cinema_booking.core.logging import get_logger

logger = get_logger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("domain_error", code=exc.code.value, status_code=exc.status_code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code.value, **exc.extra()},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
