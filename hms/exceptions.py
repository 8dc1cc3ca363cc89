"""
Custom Exception Classes

Every error the core raises carries a stable machine-readable error code,
an HTTP status and a human message. Services raise these; the handlers in
hms.exception_handlers turn them into JSON responses.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to API clients."""

    # Tenancy
    TENANT_INVALID = "TENANT_INVALID"

    # Authentication
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_ACCOUNT_NOT_ACTIVE = "AUTH_ACCOUNT_NOT_ACTIVE"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_REFRESH_TOKEN_INVALID = "AUTH_REFRESH_TOKEN_INVALID"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"

    # Account tokens
    ACCOUNT_TOKEN_INVALID = "ACCOUNT_TOKEN_INVALID"
    ACCOUNT_CURRENT_PASSWORD_INVALID = "ACCOUNT_CURRENT_PASSWORD_INVALID"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_USER_NOT_FOUND = "RESOURCE_USER_NOT_FOUND"
    RESOURCE_TENANT_NOT_FOUND = "RESOURCE_TENANT_NOT_FOUND"

    # Subscriptions
    SUBSCRIPTION_NOT_ACTIVE = "SUBSCRIPTION_NOT_ACTIVE"
    SUBSCRIPTION_LIMIT_EXCEEDED = "SUBSCRIPTION_LIMIT_EXCEEDED"

    # Validation & conflicts
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_DUPLICATE_RESOURCE = "VALIDATION_DUPLICATE_RESOURCE"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"

    # Generic
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class HMSError(Exception):
    """Base exception class for all application errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Tenant Exceptions
# ============================================================================


class TenantInvalidError(HMSError):
    """
    Raised when a tenant identifier does not resolve to an active tenant.

    The subclasses exist for logging and tests only; callers always see the
    same code and message so tenant existence is not disclosed.
    """

    def __init__(self, message: str = "Invalid or inactive tenant"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, error_code=ErrorCode.TENANT_INVALID)


class TenantNotFoundError(TenantInvalidError):
    pass


class TenantInactiveError(TenantInvalidError):
    pass


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(HMSError):
    """Raised when authentication fails"""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorCode = ErrorCode.AUTH_FAILED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, status_code=status.HTTP_401_UNAUTHORIZED, error_code=error_code, details=details or {}
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid"""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_INVALID_CREDENTIALS)


class AccountNotActiveError(AuthenticationError):
    """Raised when a correctly authenticated account is not ACTIVE"""

    def __init__(self, message: str = "Account is not active"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_ACCOUNT_NOT_ACTIVE)


class TokenExpiredError(AuthenticationError):
    """Raised when an access token has expired"""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_TOKEN_EXPIRED)


class InvalidTokenError(AuthenticationError):
    """Raised when an access token is invalid"""

    def __init__(self, message: str = "Invalid or malformed token"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_TOKEN_INVALID)


class InvalidRefreshTokenError(AuthenticationError):
    """Raised for any refresh-token verification failure"""

    def __init__(self, message: str = "Invalid refresh token"):
        super().__init__(message=message, error_code=ErrorCode.AUTH_REFRESH_TOKEN_INVALID)


class AuthorizationError(HMSError):
    """Raised when user lacks permission for an action"""

    def __init__(
        self, message: str = "You do not have permission to perform this action", required_permission: str | None = None
    ):
        details = {"required_permission": required_permission} if required_permission else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.AUTH_PERMISSION_DENIED,
            details=details,
        )


# ============================================================================
# Account Token Exceptions
# ============================================================================


class InvalidOrExpiredTokenError(HMSError):
    """Raised when a password-reset token is unknown or past its expiry"""

    def __init__(self, message: str = "Invalid or expired reset token"):
        super().__init__(
            message=message, status_code=status.HTTP_400_BAD_REQUEST, error_code=ErrorCode.ACCOUNT_TOKEN_INVALID
        )


class InvalidVerificationTokenError(InvalidOrExpiredTokenError):
    """Raised when an email-verification token matches no user"""

    def __init__(self, message: str = "Invalid verification token"):
        super().__init__(message=message)


class InvalidCurrentPasswordError(HMSError):
    def __init__(self, message: str = "Current password is incorrect"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.ACCOUNT_CURRENT_PASSWORD_INVALID,
        )


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(HMSError):
    """Base class for resource not found errors"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Any | None = None,
        error_code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user is not found"""

    def __init__(self, user_id: Any | None = None):
        super().__init__(resource_type="User", resource_id=user_id, error_code=ErrorCode.RESOURCE_USER_NOT_FOUND)


class TenantRecordNotFoundError(ResourceNotFoundError):
    """Raised by tenant administration when a tenant id does not exist"""

    def __init__(self, tenant_id: Any | None = None):
        super().__init__(resource_type="Tenant", resource_id=tenant_id, error_code=ErrorCode.RESOURCE_TENANT_NOT_FOUND)


class DuplicateResourceError(HMSError):
    """Raised when attempting to create a duplicate resource"""

    def __init__(self, resource_type: str, field: str, value: Any, message: str | None = None):
        super().__init__(
            message=message or f"{resource_type} with {field} '{value}' already exists",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.VALIDATION_DUPLICATE_RESOURCE,
            details={"resource_type": resource_type, "field": field},
        )


class DuplicateUserError(DuplicateResourceError):
    def __init__(self, email: str):
        super().__init__("User", "email", email, message="User with this email already exists")


# ============================================================================
# Subscription Exceptions
# ============================================================================


class NoActiveSubscriptionError(HMSError):
    def __init__(self, tenant_id: Any | None = None):
        super().__init__(
            message="Active subscription not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.SUBSCRIPTION_NOT_ACTIVE,
            details={"tenant_id": tenant_id} if tenant_id is not None else {},
        )


class SubscriptionLimitExceededError(HMSError):
    """Raised by the entitlement guard when a quota-bound operation is refused"""

    def __init__(self, resource: str, current_usage: int):
        super().__init__(
            message=f"Subscription limit reached for {resource}",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorCode.SUBSCRIPTION_LIMIT_EXCEEDED,
            details={"resource": resource, "current_usage": current_usage},
        )


class ConcurrentUpdateError(HMSError):
    """Raised when a row changed underneath an update"""

    def __init__(self, resource_type: str):
        super().__init__(
            message=f"{resource_type} was modified concurrently; retry the request",
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorCode.CONCURRENT_UPDATE,
            details={"resource_type": resource_type},
        )
