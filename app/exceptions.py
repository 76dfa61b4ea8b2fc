"""
Application errors and the FastAPI handlers that render them.

Every failure leaves the API as ``{error_code, message, details}``.
"""

import logging
import math
from typing import Any, Dict

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger("zapshift.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Malformed or missing request fields."""

    def __init__(self, message: str = "Invalid request", details: Dict[str, Any] = None):
        super().__init__(message, "ERR_VALIDATION", status.HTTP_400_BAD_REQUEST, details)


class GatewayError(AppException):
    """Checkout session creation or retrieval failed."""

    def __init__(self, message: str = "Payment gateway unavailable", details: Dict[str, Any] = None):
        super().__init__(message, "ERR_GATEWAY", status.HTTP_502_BAD_GATEWAY, details)


class NotFoundError(AppException):
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message,
            "ERR_NOT_FOUND",
            status.HTTP_404_NOT_FOUND,
            {"resource": resource, "id": resource_id},
        )


class AuthError(AppException):
    def __init__(self, message: str = "Invalid or missing token"):
        super().__init__(message, "ERR_AUTH", status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppException):
    def __init__(self, message: str = "Forbidden access"):
        super().__init__(message, "ERR_FORBIDDEN", status.HTTP_403_FORBIDDEN)


class ConflictError(AppException):
    def __init__(self, message: str, error_code: str = "ERR_CONFLICT", details: Dict[str, Any] = None):
        super().__init__(message, error_code, status.HTTP_409_CONFLICT, details)


class PaymentIncompleteError(ConflictError):
    """The checkout session exists but has not been paid yet."""

    def __init__(self, session_id: str, payment_status: str):
        super().__init__(
            "Payment not completed",
            "ERR_PAYMENT_INCOMPLETE",
            {"sessionId": session_id, "paymentStatus": payment_status},
        )


class InternalError(AppException):
    def __init__(self, message: str = "An internal server error occurred"):
        super().__init__(message, "ERR_INTERNAL_SERVER", status.HTTP_500_INTERNAL_SERVER_ERROR)


class DuplicateTransactionError(Exception):
    """A payment row for this transaction already exists."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"transaction {transaction_id} already recorded")


# Global Exception Handlers

def _render(status_code: int, error_code: str, message: str, details: Dict[str, Any] = None,
            headers: Dict[str, str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message, "details": details or {}},
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return _render(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_AUTH",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        500: "ERR_INTERNAL_SERVER",
    }
    return _render(
        exc.status_code,
        error_code_map.get(exc.status_code, "ERR_UNKNOWN"),
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _render(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ERR_VALIDATION",
        "Validation error",
        {"errors": jsonable_errors(exc.errors())},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _render(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ERR_INTERNAL_SERVER",
        "An internal server error occurred",
    )


def jsonable_errors(errors):
    # pydantic puts the raw exception object in ctx for custom validators;
    # JSONResponse refuses NaN and Infinity inputs
    cleaned = []
    for error in errors:
        error = dict(error)
        if isinstance(error.get("input"), float) and not math.isfinite(error["input"]):
            error["input"] = str(error["input"])
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        cleaned.append(error)
    return cleaned


def register_exception_handlers(app):
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
