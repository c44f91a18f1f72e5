"""Onboarding error taxonomy and the JSON error envelope.

Only fatal errors are exceptions. Failures of best-effort side writes
(documents, payout, menu media) are returned as values; see
onboarding.services.results. A database error that escapes every service
is reported as a failed primary write.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class OnboardingException(Exception):
    """Base exception for onboarding application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class OwnerNotResolvedError(OnboardingException):
    """The session principal does not map to a merchant owner."""

    def __init__(self, message: str = "Merchant not found"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="OWNER_NOT_RESOLVED",
        )


class FatalError(OnboardingException):
    """A primary write failed. Surfaced to the caller, never retried here."""

    def __init__(self, message: str, error_code: str = "PRIMARY_WRITE_FAILED"):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=error_code,
        )


class ProgressPersistError(FatalError):
    def __init__(self, message: str = "Failed to save registration progress"):
        super().__init__(message=message, error_code="PROGRESS_WRITE_FAILED")


class DraftPersistError(FatalError):
    def __init__(self, message: str = "Failed to save store draft"):
        super().__init__(message=message, error_code="DRAFT_WRITE_FAILED")


def error_envelope(
    status_code: int,
    error_code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    """{"success": false, "error": {"code", "message", "details"?}}"""
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def onboarding_exception_handler(request: Request, exc: OnboardingException) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_context(request)},
    )
    return error_envelope(exc.status_code, exc.error_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_context(request))
    return error_envelope(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    """Malformed request bodies; each error names its field path."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Rejected request on {request.url.path}",
        extra={"errors": errors, **_request_context(request)},
    )
    return error_envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request body is invalid",
        details={"errors": errors},
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """A database error no service caught is a failed primary write."""
    logger.error(
        f"Unhandled database error on {request.url.path}: {exc}",
        extra=_request_context(request),
        exc_info=exc,
    )
    fatal = FatalError("Failed to save onboarding data")
    return error_envelope(fatal.status_code, fatal.error_code, fatal.message)


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        extra=_request_context(request),
        exc_info=exc,
    )
    return error_envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
    )


def register_exception_handlers(app):
    app.add_exception_handler(OnboardingException, onboarding_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
