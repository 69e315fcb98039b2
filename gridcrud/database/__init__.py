"""
Database module for gridcrud.
Provides the storage abstraction with support for multiple database engines.
"""

from .base import DatabaseInterface, Transaction, bind_positional
from .factory import (
    DatabaseFactory,
    get_database,
    initialize_database,
    reset_database,
    set_database,
)
from .mysql import MySQLDatabase
from .postgresql import PostgreSQLDatabase
from .sqlite import SQLiteDatabase

__all__ = [
    "DatabaseFactory",
    "DatabaseInterface",
    "MySQLDatabase",
    "PostgreSQLDatabase",
    "SQLiteDatabase",
    "Transaction",
    "bind_positional",
    "get_database",
    "initialize_database",
    "reset_database",
    "set_database",
]
