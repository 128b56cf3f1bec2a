import logging

import pytest

from app.auth.rbac_contract import RESOURCE_ACTIONS, Action, Resource
from app.auth.resolver import (
    DenialKind,
    authorize,
    effective_permissions,
    parse_grants,
    role_has_wildcard,
)
from tests.store_helpers import FakeAdmin, FakeRole


def make_role(**overrides) -> FakeRole:
    fields = {"name": "custom", "display_name": "Custom", "level": 80, "permissions": []}
    fields.update(overrides)
    return FakeRole(**fields)


def make_admin(**overrides) -> FakeAdmin:
    fields = {"id": "admin-1", "status": "active"}
    fields.update(overrides)
    return FakeAdmin(**fields)


@pytest.mark.parametrize("resource", list(Resource))
def test_level_zero_role_allows_everything(resource):
    # Stored permissions are irrelevant for level 0.
    role = make_role(name="super_admin", level=0, permissions=[])
    admin = make_admin()

    for action in RESOURCE_ACTIONS[resource]:
        assert authorize(admin, role, resource, action)


def test_level_zero_is_wildcard_even_when_inactive():
    role = make_role(level=0, permissions=[], is_active=False)
    assert role_has_wildcard(role)


def test_role_permission_allows_exact_pair():
    role = make_role(permissions=["pricing.read"])
    assert authorize(make_admin(), role, "pricing", "read")


def test_role_permission_does_not_imply_other_actions():
    role = make_role(permissions=["pricing.read"])
    decision = authorize(make_admin(), role, "pricing", "write")
    assert not decision
    assert decision.kind == DenialKind.INSUFFICIENT_PERMISSION
    assert decision.message == "Missing permission `pricing.write`"


def test_direct_grant_is_additive():
    role = make_role(permissions=[])
    admin = make_admin(permissions=["merchantManagement.write"])

    assert authorize(admin, role, Resource.MERCHANT_MANAGEMENT, Action.WRITE)
    denied = authorize(admin, role, Resource.MERCHANT_MANAGEMENT, Action.READ)
    assert not denied
    assert denied.message == "Missing permission `merchantManagement.read`"


def test_direct_grant_applies_without_role():
    admin = make_admin(permissions=["analytics.read"])
    assert authorize(admin, None, "analytics", "read")
    assert not authorize(admin, None, "analytics", "export")


def test_inactive_custom_role_grants_nothing():
    role = make_role(permissions=["pricing.read"], is_active=False)
    assert not authorize(make_admin(), role, "pricing", "read")


def test_wildcard_on_active_custom_role_is_honoured():
    role = make_role(level=5, permissions=["*"])
    assert authorize(make_admin(), role, "payouts", "delete")


def test_invalid_pair_raises():
    with pytest.raises(ValueError):
        authorize(make_admin(), make_role(), "payouts", "export")


def test_unknown_stored_permissions_are_ignored_and_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="quicklink.rbac"):
        grants = parse_grants(["pricing.read", "legacy.permission", "*"], source="role:x")
    assert {g.name for g in grants} == {"pricing.read"}
    assert any("legacy.permission" in record.getMessage() for record in caplog.records)


def test_effective_permissions_union():
    role = make_role(permissions=["pricing.read"])
    admin = make_admin(permissions=["analytics.read"])
    assert effective_permissions(admin, role).names() == ["analytics.read", "pricing.read"]


def test_effective_permissions_wildcard():
    role = make_role(level=0, permissions=["*"])
    effective = effective_permissions(make_admin(), role)
    assert effective.wildcard
    assert effective.names() == ["*"]
