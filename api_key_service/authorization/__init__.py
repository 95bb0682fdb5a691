"""Credential validation and scoped authorization."""

from .authorization_pipeline import AuthorizationPipeline
from .credential_validator import CredentialValidator
from .permission_evaluator import PermissionEvaluator, authorize
from .tenant_scope import TenantScopeResolver, resolve_tenant
from .usage_recorder import UsageRecorder

__all__ = [
    "AuthorizationPipeline",
    "CredentialValidator",
    "PermissionEvaluator",
    "TenantScopeResolver",
    "UsageRecorder",
    "authorize",
    "resolve_tenant",
]
