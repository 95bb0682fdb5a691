"""
Identity context management.

Holds the identity binding of the request being served on this thread. The
binding is request-scoped and never persisted.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from ..schemas.identity_schemas import IdentityBinding
from .tenant_context import TenantContext


class IdentityContext:
    """Thread-local holder for the current IdentityBinding."""

    _thread_local = threading.local()

    @classmethod
    def set_current_identity(cls, identity: IdentityBinding) -> None:
        cls._thread_local.identity = identity

    @classmethod
    def get_current_identity(cls) -> Optional[IdentityBinding]:
        return getattr(cls._thread_local, "identity", None)

    @classmethod
    def clear_current_identity(cls) -> None:
        if hasattr(cls._thread_local, "identity"):
            delattr(cls._thread_local, "identity")


@contextmanager
def identity_context(identity: IdentityBinding) -> Generator[IdentityBinding, None, None]:
    """
    Bind ``identity`` (and its tenant, when resolved) for the duration of the block.

    Previous bindings are restored on exit, so nested use is safe.
    """
    previous_identity = IdentityContext.get_current_identity()
    previous_tenant = TenantContext.get_current_tenant_id()

    IdentityContext.set_current_identity(identity)
    if identity.tenant:
        TenantContext.set_current_tenant(identity.tenant)
    try:
        yield identity
    finally:
        if previous_identity is not None:
            IdentityContext.set_current_identity(previous_identity)
        else:
            IdentityContext.clear_current_identity()

        if previous_tenant:
            TenantContext.set_current_tenant(previous_tenant)
        else:
            TenantContext.clear_current_tenant()
