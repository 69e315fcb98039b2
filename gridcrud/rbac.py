"""
Table-level authorization for grid operations.

This module provides:
- The AuthorizationProvider interface the grid consults before acting
- A permission matrix with per-table and wildcard entries
- Role presets (admin, editor, viewer, guest)
- require_capability, which turns a refusal into an AuthorizationError
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union

from .errors import AuthorizationError

logger = logging.getLogger(__name__)

CAPABILITIES = ("read", "write", "delete")

Permission = Union[bool, Callable[[Any, Dict[str, Any]], bool]]

DEFAULT_ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, Permission]]] = {
    "admin": {"*": {"read": True, "write": True, "delete": True}},
    "editor": {"*": {"read": True, "write": True, "delete": False}},
    "viewer": {"*": {"read": True, "write": False, "delete": False}},
    "guest": {"*": {"read": False, "write": False, "delete": False}},
}


class AuthorizationProvider(ABC):
    """Answers whether the current caller may read, write or delete in a table."""

    @abstractmethod
    def can_read(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        pass

    @abstractmethod
    def can_write(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        pass

    @abstractmethod
    def can_delete(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        pass

    def check(self, capability: str, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        checker = getattr(self, f"can_{capability}", None)
        if capability not in CAPABILITIES or checker is None:
            raise ValueError(f"Unknown capability: {capability}")
        return checker(table, row)


class AllowAll(AuthorizationProvider):
    """Used when no authorization is configured."""

    def can_read(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return True

    def can_write(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return True

    def can_delete(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return True


class PermissionMatrix(AuthorizationProvider):
    """
    Permissions keyed by table, then capability.

    Each value is a boolean or a callable ``(user, row) -> bool``. A table
    without its own entry falls back to the ``"*"`` entry; anything still
    unresolved is denied. Without a user, everything is denied unless a
    wildcard entry exists.
    """

    def __init__(self, user: Any = None, permissions: Optional[Dict[str, Dict[str, Permission]]] = None):
        self.user = user
        self.permissions: Dict[str, Dict[str, Permission]] = dict(permissions or {})

    def add_table_permission(self, table: str, permissions: Dict[str, Permission]) -> None:
        self.permissions[table] = permissions

    def can_read(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return self._check(table, "read", row)

    def can_write(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return self._check(table, "write", row)

    def can_delete(self, table: str, row: Optional[Dict[str, Any]] = None) -> bool:
        return self._check(table, "delete", row)

    def _check(self, table: str, capability: str, row: Optional[Dict[str, Any]]) -> bool:
        if self.user is None and not self.permissions.get("*"):
            return False

        for scope in (table, "*"):
            entry = self.permissions.get(scope, {})
            if capability in entry:
                permission = entry[capability]
                if callable(permission):
                    return bool(permission(self.user, row or {}))
                return bool(permission)
        return False


class RoleBasedAccess(PermissionMatrix):
    """A permission matrix chosen by role name; unknown roles act as guest."""

    def __init__(self, user: Any = None, role: str = "guest", role_permissions: Optional[Dict[str, Dict[str, Dict[str, Permission]]]] = None):
        self.role_permissions = dict(DEFAULT_ROLE_PERMISSIONS)
        if role_permissions:
            self.role_permissions.update(role_permissions)
        super().__init__(user)
        self.set_role(role)

    def set_role(self, role: str) -> None:
        self.role = role
        self.permissions = dict(self.role_permissions.get(role, self.role_permissions["guest"]))

    def get_role(self) -> str:
        return self.role


def require_capability(provider: AuthorizationProvider, capability: str, table: str, row: Optional[Dict[str, Any]] = None) -> None:
    """
    Refuse the operation unless the provider grants ``capability`` on ``table``.

    Raises:
        AuthorizationError: If the capability is not granted
    """
    if not provider.check(capability, table, row):
        logger.warning(f"Denied {capability} on table {table}")
        raise AuthorizationError(capability, table)
