"""Exception handlers translating booking-core errors into JSON responses.

Error body shape: ``{"detail": str, "code": str, "details": {...}}``.
Request-shape problems keep FastAPI's default 422 body.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from stayledger.exceptions import BookingError

logger = logging.getLogger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    log = logger.warning if exc.status_code >= 500 else logger.info
    log("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # Constraint violations that slipped past validation, e.g. a concurrent
    # duplicate registration.
    logger.warning("%s %s -> integrity error: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Request conflicts with existing data", "code": "conflict", "details": {}},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "code": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
