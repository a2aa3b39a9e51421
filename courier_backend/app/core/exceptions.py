"""
Custom exceptions and error handlers for consistent error responses.

Every domain failure of the courier core is an AppException subclass with a
stable error code, so the audit log and API clients see the same error kind.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Optional

logger = logging.getLogger("courier.errors")


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ValidationError(AppException):
    """Raised when a command carries invalid values (checked before any write)."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class IllegalTransitionError(AppException):
    """Raised when the target status is not a direct successor of the current one."""

    def __init__(self, parcel_id: str, current_status: str, target_status: str, reason: Optional[str] = None):
        message = f"Parcel {parcel_id} cannot move from '{current_status}' to '{target_status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"parcel_id": parcel_id, "current_status": current_status, "target_status": target_status}
        )


class TerminalStateError(AppException):
    """Raised when a parcel is already Delivered or Returned."""

    def __init__(self, parcel_id: str, current_status: str):
        super().__init__(
            message=f"Parcel {parcel_id} is in terminal status '{current_status}'",
            error_code="ERR_STATE_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"parcel_id": parcel_id, "current_status": current_status}
        )


class RiderRequiredError(AppException):
    """Raised when a transition or unassignment needs a rider on the parcel."""

    def __init__(self, parcel_id: str, status_name: str):
        super().__init__(
            message=f"Parcel {parcel_id} requires an assigned rider for '{status_name}'",
            error_code="ERR_ASSIGN_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"parcel_id": parcel_id, "status": status_name}
        )


class RiderUnavailableError(AppException):
    """Raised when the rider is suspended, busy or at capacity."""

    def __init__(self, rider_id: str, reason: str):
        super().__init__(
            message=f"Rider {rider_id} is unavailable: {reason}",
            error_code="ERR_ASSIGN_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"rider_id": rider_id, "reason": reason}
        )


class HubMismatchError(AppException):
    """Raised when the rider's home hub differs from the parcel's current hub."""

    def __init__(self, rider_id: str, rider_hub_id: str, parcel_hub_id: str):
        super().__init__(
            message=f"Rider {rider_id} belongs to hub {rider_hub_id}, parcel is at hub {parcel_hub_id}",
            error_code="ERR_ASSIGN_003",
            status_code=status.HTTP_409_CONFLICT,
            details={"rider_id": rider_id, "rider_hub_id": rider_hub_id, "parcel_hub_id": parcel_hub_id}
        )


class AlreadyAssignedError(AppException):
    """Raised when a parcel already has an active rider assignment."""

    def __init__(self, parcel_id: str, rider_id: Optional[str]):
        super().__init__(
            message=f"Parcel {parcel_id} is already assigned to rider {rider_id}",
            error_code="ERR_ASSIGN_004",
            status_code=status.HTTP_409_CONFLICT,
            details={"parcel_id": parcel_id, "assigned_rider_id": rider_id}
        )


class NoRouteError(AppException):
    """Raised when a destination cannot be mapped onto the hub tree."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_ROUTE_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class DuplicateOpenDisputeError(AppException):
    """Raised when a parcel already has an Open dispute."""

    def __init__(self, parcel_id: str, dispute_id: Optional[str] = None):
        super().__init__(
            message=f"Parcel {parcel_id} already has an open dispute",
            error_code="ERR_DISPUTE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"parcel_id": parcel_id, "dispute_id": dispute_id}
        )


class DisputeAlreadyResolvedError(AppException):
    """Raised when resolving a dispute that is already Resolved."""

    def __init__(self, dispute_id: str):
        super().__init__(
            message=f"Dispute {dispute_id} is already resolved",
            error_code="ERR_DISPUTE_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"dispute_id": dispute_id}
        )


class ReferentialIntegrityError(AppException):
    """Raised when a write would orphan or break a reference."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_INTEGRITY_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class MerchantNotVerifiedError(AppException):
    """Raised when a non-Verified merchant tries to create a parcel."""

    def __init__(self, merchant_id: str, merchant_status: str):
        super().__init__(
            message=f"Merchant {merchant_id} is not verified (status: {merchant_status})",
            error_code="ERR_MERCHANT_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"merchant_id": merchant_id, "status": merchant_status}
        )


class ConflictError(AppException):
    """Raised on optimistic-lock failures or lock timeouts. Safe to retry."""

    retryable = True

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={**(details or {}), "retryable": True}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
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


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


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
