import pytest

from gridcrud.errors import AuthorizationError
from gridcrud.rbac import AllowAll, PermissionMatrix, RoleBasedAccess, require_capability


class TestPermissionMatrix:

    def test_allow_all(self):
        provider = AllowAll()
        assert provider.check("read", "contacts")
        assert provider.check("delete", "contacts")

    def test_table_entry_overrides_wildcard(self):
        provider = PermissionMatrix(user="amy", permissions={
            "*": {"read": True, "write": False},
            "contacts": {"write": True},
        })
        assert provider.can_write("contacts")
        assert not provider.can_write("products")
        assert provider.can_read("contacts")
        assert not provider.can_delete("contacts")

    def test_no_user_denies_without_wildcard(self):
        provider = PermissionMatrix(permissions={"contacts": {"read": True}})
        assert not provider.can_read("contacts")

    def test_callable_permission_sees_user_and_row(self):
        provider = PermissionMatrix(user="amy", permissions={
            "contacts": {"write": lambda user, row: row.get("owner") == user},
        })
        assert provider.can_write("contacts", {"owner": "amy"})
        assert not provider.can_write("contacts", {"owner": "bob"})

    def test_add_table_permission_opens_a_grid(self, database):
        from gridcrud.grid import Grid

        provider = PermissionMatrix(user="amy")
        grid = Grid("Contact", "contacts", database=database, authorization=provider)
        with pytest.raises(AuthorizationError):
            grid.render_table()

        provider.add_table_permission("contacts", {"read": True})
        assert "contacts_row_1" in grid.render_table()
        assert not provider.can_write("contacts")

    def test_unknown_capability(self):
        with pytest.raises(ValueError):
            AllowAll().check("publish", "contacts")


class TestRoles:

    @pytest.mark.parametrize("role,read,write,delete", [
        ("admin", True, True, True),
        ("editor", True, True, False),
        ("viewer", True, False, False),
        ("guest", False, False, False),
        ("unknown", False, False, False),
    ])
    def test_presets(self, role, read, write, delete):
        provider = RoleBasedAccess(user="amy", role=role)
        assert provider.can_read("contacts") is read
        assert provider.can_write("contacts") is write
        assert provider.can_delete("contacts") is delete

    def test_set_role(self):
        provider = RoleBasedAccess(user="amy", role="viewer")
        provider.set_role("admin")
        assert provider.get_role() == "admin"
        assert provider.can_delete("contacts")


def test_require_capability_raises_with_message():
    with pytest.raises(AuthorizationError) as excinfo:
        require_capability(RoleBasedAccess(user="amy", role="viewer"), "write", "contacts")
    assert str(excinfo.value) == "You do not have permission to edit records in contacts"
    assert excinfo.value.capability == "write"
