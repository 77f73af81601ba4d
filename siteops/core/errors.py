"""Domain exceptions and error classification for API responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Request errors
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Identity errors
    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Task errors
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_OUTSIDE_GEOFENCE = "ERR_OUTSIDE_GEOFENCE"
    ERR_PHOTO_REQUIREMENT = "ERR_PHOTO_REQUIREMENT"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class SiteOpsError(Exception):
    """Base class for errors surfaced to callers of the task engine."""

    status_code: int = 500
    code: str = ErrorCode.ERR_UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    suggestion: str = "Please try again later. If the problem persists, contact support."

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> dict[str, Any]:
        """Structured fields attached to the error response."""
        return {}


class ValidationError(SiteOpsError):
    """Malformed or semantically invalid input."""

    status_code = 400
    code = ErrorCode.ERR_VALIDATION
    severity = ErrorSeverity.LOW
    suggestion = "Check the request values and try again."


class AuthenticationError(SiteOpsError):
    """The caller has no valid identity."""

    status_code = 401
    code = ErrorCode.ERR_AUTHENTICATION_FAILED
    severity = ErrorSeverity.MEDIUM
    suggestion = "Sign in again to get a fresh access token."


class AuthorizationError(SiteOpsError):
    """The caller is known but may not perform the action."""

    status_code = 403
    code = ErrorCode.ERR_PERMISSION_DENIED
    severity = ErrorSeverity.MEDIUM
    suggestion = "Ask a store manager if you think this is an error."


class GeofenceViolation(SiteOpsError):
    """The caller's location is missing or outside the applicable fence."""

    status_code = 403
    code = ErrorCode.ERR_OUTSIDE_GEOFENCE
    severity = ErrorSeverity.LOW
    suggestion = "Move closer to the store and try again."

    def __init__(self, message: str, *, distance_m: float | None, allowed_radius_m: float) -> None:
        super().__init__(message)
        self.distance_m = distance_m
        self.allowed_radius_m = allowed_radius_m

    @property
    def details(self) -> dict[str, Any]:
        return {"distance_m": self.distance_m, "allowed_radius_m": self.allowed_radius_m}


class ConflictError(SiteOpsError):
    """A conditional write matched no rows because the state changed."""

    status_code = 409
    code = ErrorCode.ERR_CONFLICT
    severity = ErrorSeverity.LOW
    suggestion = "Refresh the task list and try again."


class NotFoundError(SiteOpsError):
    """A referenced record does not exist."""

    status_code = 404
    code = ErrorCode.ERR_NOT_FOUND
    severity = ErrorSeverity.LOW
    suggestion = "Check the identifier and try again."


class PhotoLimitExceeded(SiteOpsError):
    """Photo cap reached on upload, or too few photos to complete."""

    status_code = 400
    code = ErrorCode.ERR_PHOTO_REQUIREMENT
    severity = ErrorSeverity.LOW
    suggestion = "Check how many photos the task requires."


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    details: dict[str, Any] = {}


def status_code_for(exception: Exception) -> int:
    """Return the HTTP status for an exception."""
    if isinstance(exception, SiteOpsError):
        return exception.status_code
    return 500


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, severity and details
    """
    if isinstance(exception, SiteOpsError):
        return ErrorResponse(
            code=exception.code,
            message=exception.message,
            suggestion=exception.suggestion,
            severity=exception.severity,
            details=exception.details,
        )

    exception_type = type(exception).__name__
    error_str = str(exception).lower()

    if exception_type == "KeyError" and "not found" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="The requested record was not found.",
            suggestion=NotFoundError.suggestion,
            severity=ErrorSeverity.LOW,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion=SiteOpsError.suggestion,
        severity=ErrorSeverity.HIGH,
    )
