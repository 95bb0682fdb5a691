"""
Tenant context management.

Holds the tenant resolved for the request currently being served on this
thread, so log records and downstream code can see it without threading it
through every call.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger


class TenantContext:
    """
    Manages tenant context using thread-local storage.
    """

    _thread_local = threading.local()
    _logger = get_logger()

    @classmethod
    def set_current_tenant(cls, tenant_id: str) -> None:
        """
        Set the current tenant for the execution context.

        Args:
            tenant_id: Tenant (subdomain) label

        Raises:
            ValidationError: If tenant_id is empty or not a string
        """
        if not tenant_id or not isinstance(tenant_id, str) or not tenant_id.strip():
            raise ValidationError(
                "tenant_id must be a non-empty string",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="tenant_id",
                value=tenant_id,
            )

        cls._thread_local.tenant_id = tenant_id.strip()
        cls._logger.debug(f"Current tenant set to: {tenant_id}")

    @classmethod
    def get_current_tenant_id(cls) -> Optional[str]:
        """Get the current tenant from the execution context, or None."""
        return getattr(cls._thread_local, "tenant_id", None)

    @classmethod
    def clear_current_tenant(cls) -> None:
        """Clear the current tenant from the execution context."""
        if hasattr(cls._thread_local, "tenant_id"):
            delattr(cls._thread_local, "tenant_id")
        cls._logger.debug("Current tenant cleared")


@contextmanager
def tenant_context(tenant_id: str) -> Generator[None, None, None]:
    """
    Set the current tenant for the duration of the block, restoring the
    previous one afterwards.
    """
    previous_tenant = TenantContext.get_current_tenant_id()
    TenantContext.set_current_tenant(tenant_id)
    try:
        yield
    finally:
        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear_current_tenant()
