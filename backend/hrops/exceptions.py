import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception.

    The class name doubles as the machine-readable error kind returned to
    callers, so subclasses should be named after the failure they describe.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class PermissionDenied(AppError):
    """Actor lacks the permission required for the action."""

    status_code = status.HTTP_403_FORBIDDEN


class ValidationFailed(AppError):
    """Malformed or inconsistent input."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransition(AppError):
    """Operation is not allowed from the entity's current state."""

    status_code = status.HTTP_409_CONFLICT


class InsufficientBalance(AppError):
    """Paid leave exceeds the available balance."""

    status_code = status.HTTP_409_CONFLICT


class MonthLocked(AppError):
    """Target date falls in a closed month and no valid override was given."""

    status_code = status.HTTP_423_LOCKED


class VersionConflict(AppError):
    """Optimistic update supplied a stale version."""

    status_code = status.HTTP_409_CONFLICT


class NotFound(AppError):
    """Entity does not exist within the actor's visibility scope."""

    status_code = status.HTTP_404_NOT_FOUND


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.kind,
            detail=exc.message,
            status_code=exc.status_code,
            context=exc.context,
        ).model_dump(mode="json"),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error=ValidationFailed.__name__,
            detail=str(exc.errors()),
            status_code=status.HTTP_400_BAD_REQUEST,
        ).model_dump(mode="json"),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="InternalError",
            detail="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(mode="json"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
