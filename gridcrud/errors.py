"""
Error taxonomy for the grid engine.

Every failure the engine can report derives from GridError so callers can
catch the whole family at the transport boundary.
"""

from typing import Optional


class GridError(Exception):
    """Base class for all grid engine errors."""


class SchemaError(GridError):
    """The table does not exist or exposes no columns."""


class ValidationError(GridError):
    """A submitted value or identifier failed a declared constraint."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(GridError):
    """A capability check refused the operation."""

    MESSAGES = {
        "read": "You do not have permission to view records in {table}",
        "write": "You do not have permission to edit records in {table}",
        "delete": "You do not have permission to delete records from {table}",
    }

    def __init__(self, capability: str, table: str):
        template = self.MESSAGES.get(capability, "Access denied to {table}")
        super().__init__(template.format(table=table))
        self.capability = capability
        self.table = table


class NotFoundError(GridError):
    """The targeted row does not exist."""


class StorageError(GridError):
    """The underlying statement failed to execute."""
