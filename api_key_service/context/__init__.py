"""Context management for operations, tenants and request identities."""

from .identity_context import IdentityContext, identity_context
from .operation_context import OperationContext, OperationHandler, operation
from .tenant_context import TenantContext, tenant_context

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
    "IdentityContext",
    "identity_context",
    "TenantContext",
    "tenant_context",
]
