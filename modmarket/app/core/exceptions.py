"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""
    
    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""
    
    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""
    
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a ledger or allocation call names an unknown account."""
    
    def __init__(self, user_id: Any = None):
        super().__init__("User", user_id)


class InvalidAmountError(AppException):
    """Raised when a monetary input is negative."""
    
    def __init__(self, amount: Any):
        super().__init__(
            message=f"Amount must not be negative (got {amount})",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"amount": str(amount)}
        )


class InsufficientBalanceError(AppException):
    """Raised when a direct purchase costs more than the buyer's balance."""
    
    def __init__(self, required: Any, available: Any):
        super().__init__(
            message="Not enough money",
            error_code="ERR_LEDGER_002",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details={"required": str(required), "available": str(available)}
        )


class EmptyBatchError(AppException):
    """Raised when an allocation request has no valid mod ids left."""
    
    def __init__(self):
        super().__init__(
            message="No valid mod ids to reallocate",
            error_code="ERR_ALLOC_001",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class DeveloperNotResolvedError(Exception):
    """
    A developer key has no developer row or no payable account.
    
    Never surfaced to HTTP callers: the ledger turns it into a skipped purchase.
    """
    
    def __init__(self, developer_key: str):
        self.developer_key = developer_key
        super().__init__(f"No payable account for developer '{developer_key}'")


class MalformedEncodingError(ValueError):
    """A single claimed-slot token could not be parsed."""


# Global Exception Handlers

HTTP_ERROR_CODES = {
    400: "ERR_BAD_REQUEST",
    401: "ERR_UNAUTHORIZED",
    402: "ERR_PAYMENT_REQUIRED",
    403: "ERR_FORBIDDEN",
    404: "ERR_NOT_FOUND",
    500: "ERR_INTERNAL_SERVER"
}


def error_response(
    status_code: int,
    error_code: str,
    message: Any,
    details: Dict[str, Any] = None,
    headers: Dict[str, str] = None
) -> JSONResponse:
    """Render the `{error_code, message, details}` envelope every error uses."""
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message, "details": details or {}},
        headers=headers
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "ERR_UNKNOWN"),
        exc.detail,
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ERR_VALIDATION",
        "Validation error",
        {"errors": jsonable_encoder(exc.errors())}
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ERR_INTERNAL_SERVER",
        "An internal server error occurred"
    )
