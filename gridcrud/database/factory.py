"""
Chooses the storage backend for a configuration and holds the
process-wide database instance the application serves grids from.
"""

import logging
from typing import Dict, Optional, Type

from .base import DatabaseInterface
from .mysql import MySQLDatabase
from .postgresql import PostgreSQLDatabase
from .sqlite import SQLiteDatabase

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """Builds a validated backend from a configuration dictionary."""

    # MariaDB speaks the MySQL protocol
    BACKENDS: Dict[str, Type[DatabaseInterface]] = {
        "sqlite": SQLiteDatabase,
        "mysql": MySQLDatabase,
        "mariadb": MySQLDatabase,
        "postgresql": PostgreSQLDatabase,
    }

    @classmethod
    def create_database(cls, config: dict) -> DatabaseInterface:
        """
        Build the backend named by ``config["type"]``.

        Raises:
            ValueError: If the type is missing or unknown, or the backend
                rejects the rest of the configuration
        """
        db_type = (config.get("type") or "").lower()
        if not db_type:
            raise ValueError("Database type must be specified in configuration")

        backend = cls.BACKENDS.get(db_type)
        if backend is None:
            raise ValueError(
                f"Unsupported database type: {db_type}. "
                f"Available types: {', '.join(sorted(cls.BACKENDS))}"
            )

        database = backend(config)
        database.validate_config()
        logger.info(f"Using {db_type} storage backend")
        return database


_database_instance: Optional[DatabaseInterface] = None


def get_database() -> DatabaseInterface:
    """The process-wide database; grids built without one use it."""
    if _database_instance is None:
        raise RuntimeError("Database not initialized. Call initialize_database() first.")
    return _database_instance


def initialize_database(config: dict) -> DatabaseInterface:
    """
    Build the process-wide database and create gridcrud's own tables.

    Raises:
        RuntimeError: If the backend cannot be built or its tables created
    """
    global _database_instance

    try:
        _database_instance = DatabaseFactory.create_database(config)
        _database_instance.create_db_and_tables()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if _database_instance:
            _database_instance.close()
            _database_instance = None
        raise RuntimeError(f"Database initialization failed: {e}") from e

    return _database_instance


def set_database(database: DatabaseInterface) -> None:
    """Install an already-built database as the process-wide one."""
    global _database_instance
    _database_instance = database


def reset_database() -> None:
    """Close and forget the process-wide database."""
    global _database_instance
    if _database_instance:
        _database_instance.close()
    _database_instance = None
