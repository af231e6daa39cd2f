"""
Exception classes for the billing core.

Services raise these on the first violated precondition. The HTTP layer maps
them to the JSON error envelope in exception_handlers.py.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside every error message."""

    # Authentication & authorization
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # Validation
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"

    # Entitlements
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SUBSCRIPTION_INACTIVE = "SUBSCRIPTION_INACTIVE"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"

    # Server
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class BillingError(Exception):
    """Base exception class for all billing-core exceptions"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Authentication & Authorization
# ============================================================================


class AuthenticationError(BillingError):
    """Raised when the bearer token is missing or invalid"""

    error_code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class AuthorizationError(BillingError):
    """Raised when the caller lacks the role for an action"""

    error_code = ErrorCode.AUTH_PERMISSION_DENIED

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# Resources
# ============================================================================


class NotFoundError(BillingError):
    """Raised when a referenced plan, promotion, organization or entry is absent"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None, message: str | None = None):
        if message is None:
            message = f"{resource_type} not found"
            if resource_id is not None:
                message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ConflictError(BillingError):
    """Raised on a uniqueness violation (plan slug, promotion code)"""

    error_code = ErrorCode.RESOURCE_CONFLICT

    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            message=f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource_type": resource_type, "field": field, "value": value},
        )


class InvalidArgumentError(BillingError):
    """Raised for bad discount configuration, bad trial extension and similar input"""

    error_code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


# ============================================================================
# Entitlements
# ============================================================================


class QuotaExceededError(BillingError):
    """Raised by the quota guard when a countable resource is at its ceiling"""

    error_code = ErrorCode.QUOTA_EXCEEDED

    def __init__(self, dimension: str, current: int, limit: int):
        self.dimension = dimension
        self.current = current
        self.limit = limit
        super().__init__(
            message=(
                f"{dimension.capitalize()} quota exceeded. You have {current}/{limit} {dimension}s. "
                f"Please upgrade your plan to add more {dimension}s."
            ),
            status_code=status.HTTP_403_FORBIDDEN,
            details={"dimension": dimension, "current": current, "limit": limit},
        )


class SubscriptionInactiveError(BillingError):
    """Raised by the subscription guard for mutating requests of lapsed organizations"""

    error_code = ErrorCode.SUBSCRIPTION_INACTIVE

    def __init__(self, subscription_status: str | None = None):
        super().__init__(
            message="Your subscription is inactive. Please upgrade to continue using this feature.",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"subscription_status": subscription_status},
        )


class OrganizationNotFoundError(BillingError):
    """
    Raised when the request's organization cannot be resolved.

    Reported as 403 rather than 404 so callers cannot discover which
    organizations exist.
    """

    error_code = ErrorCode.ORGANIZATION_NOT_FOUND

    def __init__(self):
        super().__init__(message="Organization not found", status_code=status.HTTP_403_FORBIDDEN)
