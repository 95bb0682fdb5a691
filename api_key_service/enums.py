"""
Enums used across the api_key_service package.

Kept in their own module so schemas, models and services can share them
without circular imports.
"""

import enum


class KeyStatus(str, enum.Enum):
    """Lifecycle status of a credential record. Only ACTIVE validates."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ASSIGNED = "assigned"


class DenialReason(str, enum.Enum):
    """Stable, machine-checkable reasons for refusing a request."""

    MISSING_CREDENTIALS = "missing_credentials"
    MISSING_TENANT = "missing_tenant"
    INVALID_KEY = "invalid_key"
    INVALID_CREDENTIALS = "invalid_credentials"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    UNBOUND_CREDENTIAL = "unbound_credential"
    IDENTITY_LOOKUP_FAILED = "identity_lookup_failed"
    TENANT_NOT_ALLOWED = "tenant_not_allowed"
    TRANSIENT_FAILURE = "transient_failure"
