"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("petwash")


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


class WalkNotFoundError(AppException):
    """Raised when no walk session resolves for the given identifier."""

    def __init__(self, walk_id: Any):
        super().__init__(
            message="Walk not found",
            error_code="ERR_WALK_404",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"walk_id": walk_id}
        )


class WalkAccessDeniedError(InsufficientPermissionsError):
    """Raised when the caller is neither the owner nor the walker of a walk."""

    def __init__(self, walk_id: Any):
        super().__init__(
            message="Access denied. You are not part of this walk.",
            details={"walk_id": walk_id}
        )


class WalkStateError(AppException):
    """Raised when an operation is not allowed in the walk's current status."""

    def __init__(self, message: str, current_status: str):
        super().__init__(
            message=message,
            error_code="ERR_WALK_409",
            status_code=status.HTTP_409_CONFLICT,
            details={"status": current_status}
        )


class StaleLocationError(AppException):
    """Raised when a GPS sample is older than the last recorded one."""

    def __init__(self, last_recorded_at: Any):
        super().__init__(
            message="Location sample is older than the last recorded sample",
            error_code="ERR_GPS_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"last_recorded_at": str(last_recorded_at)}
        )


class CheckInTooFarError(AppException):
    """Raised when the walker checks in too far from the previous known location."""

    def __init__(self, distance_meters: float, max_distance_meters: float):
        super().__init__(
            message="Check-in location is too far from the expected location",
            error_code="ERR_GPS_002",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={
                "distance_meters": round(distance_meters),
                "max_distance_meters": max_distance_meters
            }
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


def jsonable_errors(exc: RequestValidationError):
    # ctx may carry raw exception objects that are not JSON serializable
    return [
        {k: v for k, v in err.items() if k != "ctx"}
        for err in exc.errors()
    ]


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
