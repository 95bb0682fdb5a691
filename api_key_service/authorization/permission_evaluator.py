"""
Permission evaluation against a credential's permission set.
"""

from typing import Iterable, Optional

from ..config import get_config
from ..exceptions import InsufficientPermissionsError
from ..schemas.identity_schemas import IdentityBinding


def authorize(permissions: Iterable[str], required: str, wildcard: Optional[str] = None) -> bool:
    """
    Decide whether ``permissions`` grant ``required``.

    The wildcard permission grants everything; otherwise only an exact match counts.
    """
    if wildcard is None:
        wildcard = get_config().security.wildcard_permission
    granted = permissions if isinstance(permissions, (set, frozenset)) else set(permissions)
    if wildcard in granted:
        return True
    return required in granted


class PermissionEvaluator:
    """Applies ``authorize`` to an identity and raises on refusal."""

    def __init__(self, wildcard: Optional[str] = None):
        self.wildcard = wildcard or get_config().security.wildcard_permission

    def authorize(self, permissions: Iterable[str], required: str) -> bool:
        return authorize(permissions, required, self.wildcard)

    def check(self, identity: IdentityBinding, required: str) -> None:
        """
        Raises:
            InsufficientPermissionsError: If the identity lacks ``required``
        """
        if not self.authorize(identity.permissions, required):
            raise InsufficientPermissionsError(
                credential_id=identity.credential_id, required_permission=required
            )
