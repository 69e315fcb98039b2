"""
PostgreSQL database implementation.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool
from sqlmodel import create_engine

from ..errors import StorageError
from ..schema import enum_declaration
from .base import DatabaseInterface, bind_positional


class PostgreSQLDatabase(DatabaseInterface):
    """PostgreSQL database implementation with connection pooling."""

    NOW_EXPRESSION = "NOW()"

    def create_engine(self) -> Engine:
        """Create and configure the PostgreSQL engine with connection pooling."""
        connection_string = self.get_connection_string()

        engine_kwargs = {
            "poolclass": QueuePool,
            "pool_size": self.config.get("pool_size", 10),
            "max_overflow": self.config.get("max_overflow", 20),
            "pool_pre_ping": True,  # Validate connections before use
            "pool_recycle": self.config.get("pool_recycle", 3600),
            "connect_args": {"application_name": self.config.get("application_name", "gridcrud")},
        }

        engine = create_engine(connection_string, **engine_kwargs)
        logging.info(f"Created PostgreSQL engine with connection pooling (pool_size={engine_kwargs['pool_size']})")
        return engine

    def get_connection_string(self) -> str:
        """Get the PostgreSQL connection string."""
        url = self.config.get("url")
        if not url:
            raise ValueError("PostgreSQL requires a connection URL or host/name settings")
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    def validate_config(self) -> bool:
        """Validate PostgreSQL configuration."""
        url = self.config.get("url")
        if not url or not url.startswith(("postgresql", "postgres://")):
            raise ValueError(f"Invalid PostgreSQL URL format: {url}")
        return True

    def describe_columns(self, table: str) -> List[Dict[str, Any]]:
        """
        Describe columns from information_schema.

        User-defined enum types are expanded to enum('a','b') from pg_enum so
        they classify like their MySQL counterparts.
        """
        rows = self.fetch_all(
            "SELECT c.column_name, c.data_type, c.udt_name, c.is_nullable, c.column_default, "
            "c.character_maximum_length, c.numeric_precision, c.numeric_scale "
            "FROM information_schema.columns c "
            "WHERE c.table_schema = current_schema() AND c.table_name = ? "
            "ORDER BY c.ordinal_position",
            [table],
        )
        primary_keys = {
            row["column_name"]
            for row in self.fetch_all(
                "SELECT kcu.column_name FROM information_schema.table_constraints tc "
                "JOIN information_schema.key_column_usage kcu "
                "ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema "
                "WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = current_schema() "
                "AND tc.table_name = ?",
                [table],
            )
        }

        columns = []
        for row in rows:
            raw_type = self._raw_type(row)
            default = row["column_default"] or ""
            columns.append({
                "name": row["column_name"],
                "type": raw_type,
                "primary_key": row["column_name"] in primary_keys,
                "auto_increment": default.startswith("nextval(") or "identity" in default.lower(),
                "nullable": row["is_nullable"] == "YES",
            })
        return columns

    def _raw_type(self, row: Dict[str, Any]) -> str:
        if row["data_type"] == "USER-DEFINED":
            labels = [
                label["enumlabel"]
                for label in self.fetch_all(
                    "SELECT e.enumlabel FROM pg_type t JOIN pg_enum e ON e.enumtypid = t.oid "
                    "WHERE t.typname = ? ORDER BY e.enumsortorder",
                    [row["udt_name"]],
                )
            ]
            if labels:
                return enum_declaration(labels)
            return row["udt_name"]

        if row["data_type"] == "numeric" and row["numeric_precision"]:
            return f"decimal({row['numeric_precision']},{row['numeric_scale'] or 0})"
        if row["character_maximum_length"]:
            return f"{row['data_type']}({row['character_maximum_length']})"
        return row["data_type"]

    def insert(self, sql: str, params: Sequence[Any] = (), primary_key: Optional[str] = None) -> Any:
        """Run an INSERT, using RETURNING to report the generated key."""
        if not primary_key:
            return super().insert(sql, params)

        statement, bound = bind_positional(f"{sql} RETURNING {self.quote(primary_key)}", params)
        try:
            with self.engine.begin() as connection:
                return connection.execute(text(statement), bound).scalar()
        except SQLAlchemyError as e:
            self._log_failure(sql, e)
            raise StorageError("Database insert failed") from e
