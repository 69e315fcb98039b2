"""
gridcrud: inline-editable database grids for FastAPI.
"""

from .api import GridRegistry, create_grid_routes
from .errors import AuthorizationError, GridError, NotFoundError, SchemaError, StorageError, ValidationError
from .grid import Grid
from .protocol import EditSessionProtocol, ProtocolResult
from .scaffold import build_dynamic_grid

__all__ = [
    "AuthorizationError",
    "EditSessionProtocol",
    "Grid",
    "GridError",
    "GridRegistry",
    "NotFoundError",
    "ProtocolResult",
    "SchemaError",
    "StorageError",
    "ValidationError",
    "build_dynamic_grid",
    "create_grid_routes",
]
