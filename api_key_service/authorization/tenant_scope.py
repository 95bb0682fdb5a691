"""
Tenant (subdomain) resolution and scoping.

The requested tenant comes from the explicit override header when present,
otherwise from the first label of the host. The owning user must list that
tenant among their authorized subdomains.
"""

from typing import Optional

from ..exceptions import (
    IdentityLookupFailedError,
    MissingTenantError,
    TenantNotAllowedError,
    UnboundCredentialError,
)
from ..schemas.identity_schemas import IdentityBinding
from ..services.identity_service import IdentityProvider


def _tenant_from_host(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    host = host.strip()
    # Bracketed IPv6 literals carry no subdomain
    if not host or host.startswith("["):
        return None
    host = host.split(":", 1)[0]
    labels = host.split(".")
    if len(labels) < 2 or not labels[0]:
        return None
    return labels[0]


def resolve_tenant(explicit: Optional[str], host: Optional[str]) -> str:
    """
    Determine the requested tenant.

    Args:
        explicit: Value of the tenant override header, if any
        host: Host the request was addressed to, possibly with a port

    Returns:
        The tenant label

    Raises:
        MissingTenantError: If neither source yields a tenant
    """
    if explicit and explicit.strip():
        return explicit.strip()

    tenant = _tenant_from_host(host)
    if tenant is None:
        raise MissingTenantError(host=host)
    return tenant


class TenantScopeResolver:
    """Checks a requested tenant against the owning user's authorized list."""

    def __init__(self, identity_provider: IdentityProvider):
        self.identity_provider = identity_provider

    def check(self, identity: IdentityBinding, tenant: str) -> IdentityBinding:
        """
        Verify that ``identity`` may act within ``tenant``.

        Returns:
            The identity with its tenant filled in

        Raises:
            UnboundCredentialError: The credential has no owning user
            IdentityLookupFailedError: The user could not be fetched
            TenantNotAllowedError: The tenant is not in the user's list
        """
        if not identity.user_id:
            raise UnboundCredentialError(credential_id=identity.credential_id)

        try:
            user = self.identity_provider.get_user(identity.user_id)
        except Exception as e:
            raise IdentityLookupFailedError(
                cause=e, credential_id=identity.credential_id, user_id=identity.user_id
            ) from e

        if user is None:
            raise IdentityLookupFailedError(
                credential_id=identity.credential_id, user_id=identity.user_id
            )

        if not user.allows_tenant(tenant):
            raise TenantNotAllowedError(
                credential_id=identity.credential_id, user_id=identity.user_id, tenant=tenant
            )

        return identity.with_tenant(tenant)
