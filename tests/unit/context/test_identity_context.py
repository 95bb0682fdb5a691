"""
Tests for the request-scoped identity context.
"""

import pytest

from api_key_service.context.identity_context import IdentityContext, identity_context
from api_key_service.context.tenant_context import TenantContext, tenant_context
from api_key_service.schemas import IdentityBinding


def make_identity(tenant=None, user_id="user-123"):
    return IdentityBinding(
        credential_id="cred-1",
        api_key="ak_abc",
        user_id=user_id,
        permissions=frozenset({"read:data"}),
        tenant=tenant,
    )


class TestIdentityContext:
    """Thread-local identity holder."""

    def test_empty_by_default(self):
        assert IdentityContext.get_current_identity() is None

    def test_set_get_clear(self):
        identity = make_identity()
        IdentityContext.set_current_identity(identity)
        assert IdentityContext.get_current_identity() is identity

        IdentityContext.clear_current_identity()
        assert IdentityContext.get_current_identity() is None


class TestIdentityContextManager:
    """identity_context binds the identity and its tenant."""

    def test_binds_identity_and_tenant(self):
        identity = make_identity(tenant="acme")

        with identity_context(identity) as bound:
            assert bound is identity
            assert IdentityContext.get_current_identity() is identity
            assert TenantContext.get_current_tenant_id() == "acme"

        assert IdentityContext.get_current_identity() is None
        assert TenantContext.get_current_tenant_id() is None

    def test_without_tenant_leaves_tenant_untouched(self):
        with tenant_context("outer"):
            with identity_context(make_identity()):
                assert TenantContext.get_current_tenant_id() == "outer"
            assert TenantContext.get_current_tenant_id() == "outer"

    def test_nested_restores_previous_identity(self):
        outer = make_identity(tenant="acme", user_id="outer")
        inner = make_identity(tenant="globex", user_id="inner")

        with identity_context(outer):
            with identity_context(inner):
                assert IdentityContext.get_current_identity().user_id == "inner"
                assert TenantContext.get_current_tenant_id() == "globex"
            assert IdentityContext.get_current_identity().user_id == "outer"
            assert TenantContext.get_current_tenant_id() == "acme"

    def test_restores_on_exception(self):
        with pytest.raises(ValueError):
            with identity_context(make_identity(tenant="acme")):
                raise ValueError("handler failed")

        assert IdentityContext.get_current_identity() is None
        assert TenantContext.get_current_tenant_id() is None
