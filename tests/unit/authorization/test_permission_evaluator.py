"""
Tests for permission evaluation.
"""

import pytest

from api_key_service.authorization import PermissionEvaluator, authorize
from api_key_service.exceptions import InsufficientPermissionsError
from api_key_service.schemas import IdentityBinding


@pytest.mark.parametrize(
    "permissions,required,expected",
    [
        (["read:data"], "read:data", True),
        (["read:data"], "write:data", False),
        (["super:admin"], "anything:at_all", True),
        (["read:data", "super:admin"], "read:admin", True),
        ([], "read:data", False),
        (["read:*"], "read:data", False),
        (["Read:Data"], "read:data", False),
    ],
)
def test_authorize(permissions, required, expected):
    assert authorize(permissions, required, wildcard="super:admin") is expected


def test_authorize_uses_configured_wildcard(app_config):
    assert authorize(["super:admin"], "read:data") is True


def test_custom_wildcard():
    evaluator = PermissionEvaluator(wildcard="root")

    assert evaluator.authorize({"root"}, "read:data") is True
    assert evaluator.authorize({"super:admin"}, "read:data") is False


class TestCheck:
    """PermissionEvaluator.check raises on refusal."""

    def identity(self, *permissions):
        return IdentityBinding(credential_id="c-1", api_key="ak_1", permissions=set(permissions))

    def test_granted(self):
        PermissionEvaluator().check(self.identity("read:data"), "read:data")

    def test_refused(self):
        with pytest.raises(InsufficientPermissionsError) as exc_info:
            PermissionEvaluator().check(self.identity("read:data"), "read:admin")

        assert exc_info.value.status_code == 403
        assert exc_info.value.context["required_permission"] == "read:admin"
