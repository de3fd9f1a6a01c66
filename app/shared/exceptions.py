"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInputException(AppException):
    """Raised when request data is malformed or violates a value rule."""

    status_code = 400
    code = "invalid_input"


class InvalidSignatureException(AppException):
    """Raised when a webhook payload cannot be authenticated."""

    status_code = 400
    code = "invalid_signature"


class UnauthenticatedException(AppException):
    """Raised when credentials are missing or invalid."""

    status_code = 401
    code = "unauthenticated"


class ForbiddenException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class SlotNotFoundException(NotFoundException):
    """Raised when a booking targets an unknown time slot."""

    code = "slot_not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class SlotUnavailableException(ConflictException):
    """Raised when a time slot is already booked."""

    code = "slot_unavailable"


class PaymentProviderException(AppException):
    """Raised when the payment provider rejects or fails a request."""

    status_code = 500
    code = "payment_provider_error"


class PaymentProviderTimeoutException(PaymentProviderException):
    """Raised when the payment provider does not answer in time."""

    status_code = 503
    code = "payment_provider_timeout"


def _error_body(code: str, message: str) -> dict[str, dict[str, str]]:
    return {"error": {"code": code, "message": message}}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as plain 400 errors."""
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(details) or "Invalid request"
    return JSONResponse(status_code=400, content=_error_body(InvalidInputException.code, message))


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("http_error", str(exc.detail)),
        headers=exc.headers,
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_error", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
