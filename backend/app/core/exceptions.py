"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("order_ledger")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for missing or malformed input the caller can fix."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidPricingInput(ValidationError):
    """Raised when a price, shipping cost, tax rate or quantity is out of range."""


class PaymentNotCredited(ValidationError):
    """Raised when the payment gateway does not report the payment as credited."""

    def __init__(self, payment_id: str, gateway_status: Any = None):
        super().__init__(
            message="Payment not credited",
            details={"payment_id": payment_id, "gateway_status": gateway_status}
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


class CatalogLookupFailed(AppException):
    """Raised when a SKU is absent from the catalog. No partial pricing happens."""

    def __init__(self, sku: str):
        super().__init__(
            message=f"Product with SKU {sku} not found",
            error_code="ERR_CATALOG_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"sku": sku}
        )


class IllegalTransitionError(AppException):
    """Raised when the order state machine rejects a requested move."""

    def __init__(self, current: Any, requested: Any, reason: str = None):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        message = f"Cannot move order from {current_value} to {requested_value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_code="ERR_TRANSITION_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_value, "requested": requested_value}
        )


class InsufficientBalanceError(AppException):
    """Raised when a manual debit exceeds the available balance."""

    def __init__(self, balance: Any, requested: Any):
        super().__init__(
            message="Insufficient balance",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"balance": str(balance), "requested": str(requested)}
        )


class IncompleteProfileError(AppException):
    """Raised when an account lacks the shipping profile needed before charging."""

    def __init__(self, enrollment: str, missing_fields: list):
        super().__init__(
            message="Update user details (ADD, PINCODE, State)",
            error_code="ERR_PROFILE_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"enrollment": enrollment, "missing": missing_fields}
        )


class DuplicateResourceError(AppException):
    """Raised on an order id or payment id collision."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} {resource_id} already exists",
            error_code="ERR_DUPLICATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "id": resource_id}
        )


class GatewayError(AppException):
    """
    Raised when the carrier or payment API fails.

    Retryable failures (timeouts, transport errors, 5xx) map to 503,
    terminal vendor rejections map to 502. The vendor message is kept
    for operator visibility.
    """

    def __init__(
        self,
        gateway: str,
        message: str,
        retryable: bool = False,
        vendor_response: Any = None,
        upstream_status: int = None,
    ):
        self.gateway = gateway
        self.retryable = retryable
        self.upstream_status = upstream_status
        super().__init__(
            message=f"{gateway} error: {message}",
            error_code="ERR_GATEWAY_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE if retryable else status.HTTP_502_BAD_GATEWAY,
            details={
                "gateway": gateway,
                "retryable": retryable,
                "upstream_status": upstream_status,
                "vendor_response": vendor_response,
            }
        )


class NotReadyForPickupError(AppException):
    """Raised when the carrier reports a shipment that cannot be picked up."""

    def __init__(self, shipment_id: str, carrier_status: Any = None, reason: str = None):
        super().__init__(
            message=reason or "Shipment is not eligible for pickup (not READY TO SHIP or already shipped)",
            error_code="ERR_CARRIER_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"shipment_id": shipment_id, "carrier_status": carrier_status}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if isinstance(exc, GatewayError):
        logger.warning("Gateway failure", extra={"path": request.url.path, "details": exc.details})
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that JSONResponse cannot render
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors
