"""
Domain errors raised by the scheduling services.

Each error carries the HTTP status it maps to so routers can let them
propagate and a single handler renders them.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base exception for scheduling operations."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    """Raised when a doctor, working-hours rule or schedule does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidInputError(SchedulingError):
    """Raised when request data fails validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(SchedulingError):
    """Raised when a record collides with an existing one."""

    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(SchedulingError):
    """Raised when deleting something that still has booked appointments."""

    status_code = status.HTTP_412_PRECONDITION_FAILED


async def scheduling_error_handler(request: Request, exc: SchedulingError):
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
