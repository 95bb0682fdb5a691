"""
Exception hierarchy with error codes, context, and correlation support.

Every error carries a standardized code, an HTTP status, optional cause and
free-form context, and logs itself when constructed. Authorization denials
additionally carry a DenialReason so callers can branch on a stable value.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .enums import DenialReason

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    ENTROPY_ERROR = "1005"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"
    CONSTRAINT_VIOLATION = "3003"

    # Business logic errors (4xxx)
    PERMISSION_DENIED = "4003"
    PRECONDITION_FAILED = "4004"

    # Authentication and authorization errors (6xxx)
    MISSING_CREDENTIALS = "6000"
    INVALID_API_KEY = "6001"
    INVALID_CREDENTIALS = "6002"
    INSUFFICIENT_PERMISSIONS = "6003"
    UNBOUND_CREDENTIAL = "6004"
    IDENTITY_LOOKUP_FAILED = "6005"
    TENANT_NOT_ALLOWED = "6006"
    MISSING_TENANT = "6007"
    TRANSIENT_STORE_FAILURE = "6008"


# Keys that must never end up in error context or logs
_REDACTED_KEYS = {"api_secret", "secret", "hashed_secret", "presented_secret"}


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = {k: v for k, v in context.items() if k not in _REDACTED_KEYS}

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Lazy import: the logger module depends on config, which depends on us
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.value}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause type and message (useful for debugging)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Add additional context to the error (fluent interface)."""
        self.context.update({k: v for k, v in kwargs.items() if k not in _REDACTED_KEYS})
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Store layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, status_code, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class IssuanceError(ServiceError):
    """Key generation or secret hashing failed; nothing was persisted."""

    def __init__(self, message: str = "Failed to issue API key", **kwargs):
        kwargs.setdefault("error_code", ErrorCode.INTERNAL_ERROR)
        super().__init__(message, operation="issue_key", **kwargs)


class AssignmentConflictError(ServiceError):
    """Raised when assigning a key that is already bound to a user."""

    def __init__(self, message: str = "API Key is already assigned to a user", **kwargs):
        super().__init__(
            message, error_code=ErrorCode.CONFLICT, operation="assign_key", status_code=409, **kwargs
        )


# ==================== AUTHORIZATION DENIALS ====================

INVALID_CREDENTIALS_PUBLIC_MESSAGE = "Invalid API credentials"


class AuthorizationError(BaseError):
    """
    Base class for every denial produced by the authorization pipeline.

    ``reason`` is the precise internal reason used for auditing. ``public_code``
    and ``public_message`` are what the caller gets to see; credential-stage
    denials share them so responses do not reveal whether a key exists.
    """

    reason: DenialReason = DenialReason.INVALID_CREDENTIALS
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int,
        public_message: Optional[str] = None,
        public_code: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["denial_reason"] = self.reason.value
        self.public_message = public_message or message
        self.public_code = public_code or self.reason.value
        super().__init__(message, error_code, status_code, cause, **context)

    def to_public_dict(self) -> Dict[str, Any]:
        """Render the body a client is allowed to see."""
        return {
            "error": {
                "code": self.public_code,
                "message": self.public_message,
                "id": self.error_id,
            }
        }


class ClientInputError(AuthorizationError):
    """The request itself is malformed; nothing was looked up."""


class MissingCredentialsError(ClientInputError):
    """Key or secret header missing or malformed."""

    reason = DenialReason.MISSING_CREDENTIALS

    def __init__(self, message: str = "X-API-Key and X-API-Secret headers are required", **kwargs):
        super().__init__(message, ErrorCode.MISSING_CREDENTIALS, 400, **kwargs)


class MissingTenantError(ClientInputError):
    """Tenant could not be determined from the override header or host."""

    reason = DenialReason.MISSING_TENANT

    def __init__(
        self,
        message: str = "Subdomain not found in X-Client-Subdomain header or Host",
        **kwargs,
    ):
        super().__init__(message, ErrorCode.MISSING_TENANT, 400, **kwargs)


class InvalidKeyError(AuthorizationError):
    """No (or more than one) credential record matches the public key."""

    reason = DenialReason.INVALID_KEY

    def __init__(self, message: str = "Invalid API Key", **kwargs):
        super().__init__(
            message,
            ErrorCode.INVALID_API_KEY,
            401,
            public_message=INVALID_CREDENTIALS_PUBLIC_MESSAGE,
            public_code=DenialReason.INVALID_CREDENTIALS.value,
            **kwargs,
        )


class InvalidCredentialsError(AuthorizationError):
    """Wrong secret or inactive key; the two are deliberately not distinguished."""

    reason = DenialReason.INVALID_CREDENTIALS

    def __init__(self, message: str = "Invalid credentials or inactive key", **kwargs):
        super().__init__(
            message,
            ErrorCode.INVALID_CREDENTIALS,
            401,
            public_message=INVALID_CREDENTIALS_PUBLIC_MESSAGE,
            public_code=DenialReason.INVALID_CREDENTIALS.value,
            **kwargs,
        )


class InsufficientPermissionsError(AuthorizationError):
    """The credential lacks the permission the route requires."""

    reason = DenialReason.INSUFFICIENT_PERMISSIONS

    def __init__(self, message: str = "Insufficient permissions", **kwargs):
        super().__init__(message, ErrorCode.INSUFFICIENT_PERMISSIONS, 403, **kwargs)


class UnboundCredentialError(AuthorizationError):
    """The credential was never assigned to a user."""

    reason = DenialReason.UNBOUND_CREDENTIAL

    def __init__(self, message: str = "API Key not associated with a user", **kwargs):
        super().__init__(message, ErrorCode.UNBOUND_CREDENTIAL, 403, **kwargs)


class IdentityLookupFailedError(AuthorizationError):
    """The owning user's record could not be fetched."""

    reason = DenialReason.IDENTITY_LOOKUP_FAILED

    def __init__(self, message: str = "Could not retrieve user data", **kwargs):
        super().__init__(message, ErrorCode.IDENTITY_LOOKUP_FAILED, 403, **kwargs)


class TenantNotAllowedError(AuthorizationError):
    """The requested tenant is not in the user's authorized list."""

    reason = DenialReason.TENANT_NOT_ALLOWED

    def __init__(self, message: str = "Subdomain not allowed", **kwargs):
        super().__init__(message, ErrorCode.TENANT_NOT_ALLOWED, 403, **kwargs)


class TransientStoreFailureError(AuthorizationError):
    """The store failed while validating; the whole request may be retried."""

    reason = DenialReason.TRANSIENT_FAILURE
    retryable = True

    def __init__(self, message: str = "Credential store temporarily unavailable", **kwargs):
        super().__init__(message, ErrorCode.TRANSIENT_STORE_FAILURE, 503, **kwargs)


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'APIKey', 'UserProfile')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., credential_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for duplicate resource errors.

    Returns:
        Configured RepositoryError instance with 409 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def permission_denied(
    operation: str, resource_type: Optional[str] = None, **context
) -> ServiceError:
    """Factory for operations refused on business grounds."""
    message = f"Permission denied for {operation}"
    if resource_type:
        message += f" on {resource_type}"
    return ServiceError(
        message,
        error_code=ErrorCode.PERMISSION_DENIED,
        operation=operation,
        status_code=403,
        resource_type=resource_type,
        **context,
    )


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """Factory for validation errors."""
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
