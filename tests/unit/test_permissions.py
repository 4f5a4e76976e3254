"""
Unit tests for permission sets and the role directory.
"""
import json

import pytest

from orders.errors import UnknownRole
from orders.permissions import ORDERS_APPROVE, ORDERS_CREATE, ORDERS_UPDATE, PermissionSet, RoleDirectory


@pytest.mark.unit
class TestPermissionSet:

    def test_membership(self):
        perms = PermissionSet(["orders.read", " orders.update ", ""])
        assert perms.has_permission("orders.update")
        assert not perms.has_permission("orders.approve")
        assert "orders.read" in perms
        assert len(perms) == 2

    def test_any_and_all(self):
        perms = PermissionSet([ORDERS_CREATE, ORDERS_UPDATE])
        assert perms.has_any([ORDERS_APPROVE, ORDERS_UPDATE])
        assert not perms.has_all([ORDERS_APPROVE, ORDERS_UPDATE])
        assert perms.has_all([])


@pytest.mark.unit
class TestRoleDirectory:

    def test_built_in_roles(self):
        roles = RoleDirectory()
        assert roles.role_names == ["admin", "manager", "production", "sales"]
        assert roles.permissions_for("Manager").has_permission(ORDERS_APPROVE)
        assert not roles.permissions_for("sales").has_permission(ORDERS_UPDATE)

    def test_unknown_role(self):
        with pytest.raises(UnknownRole):
            RoleDirectory().permissions_for("driver")

    def test_load_overlays_file(self, temp_dir):
        path = temp_dir / "roles.json"
        path.write_text(json.dumps({
            "_comment": "ignored",
            "sales": ["orders.read", "orders.create", "orders.update"],
            "auditor": ["orders.read"],
        }))
        roles = RoleDirectory.load(path)
        assert "auditor" in roles.role_names
        assert roles.permissions_for("sales").has_permission(ORDERS_UPDATE)
        assert roles.permissions_for("admin").has_permission(ORDERS_APPROVE)

    def test_missing_file_gives_defaults(self, temp_dir):
        assert RoleDirectory.load(temp_dir / "nope.json").role_names == RoleDirectory().role_names

    def test_bad_file_is_ignored(self, temp_dir, caplog):
        path = temp_dir / "roles.json"
        path.write_text('{"sales": "orders.read"}')
        roles = RoleDirectory.load(path)
        assert not roles.permissions_for("sales").has_permission("orders.update")
        assert "Failed to load roles file" in caplog.text

    def test_file_with_one_bad_role_adds_nothing(self, temp_dir, caplog):
        path = temp_dir / "roles.json"
        path.write_text(json.dumps({
            "auditor": ["orders.read"],
            "production": ["orders.read", "orders.update", "orders.approve"],
            "sales": "orders.read",
        }))
        roles = RoleDirectory.load(path)
        assert roles.role_names == RoleDirectory().role_names
        assert not roles.permissions_for("production").has_permission(ORDERS_APPROVE)
        assert "Failed to load roles file" in caplog.text
