"""
SQLite database implementation.
"""

import logging
import re
from typing import Any, Dict, List

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from .base import DatabaseInterface

# SQLite has no ENUM type; a CHECK (col IN ('a','b')) constraint plays that role
_CHECK_IN = re.compile(
    r"CHECK\s*\(\s*[\"`\[]?(\w+)[\"`\]]?\s+IN\s*\(([^)]*)\)\s*\)",
    re.IGNORECASE,
)


class SQLiteDatabase(DatabaseInterface):
    """SQLite database implementation."""

    def create_engine(self) -> Engine:
        """Create and configure the SQLite engine."""
        connection_string = self.get_connection_string()

        # SQLite-specific connection args for thread safety
        engine_kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}

        # An in-memory database only lives as long as its single connection
        if self.is_memory_database(connection_string):
            engine_kwargs["poolclass"] = StaticPool

        engine = create_engine(connection_string, **engine_kwargs)
        logging.info(f"Created SQLite engine with connection: {connection_string}")
        return engine

    @staticmethod
    def is_memory_database(connection_string: str) -> bool:
        return connection_string in ("sqlite://", "sqlite:///:memory:")

    def get_connection_string(self) -> str:
        """Get the SQLite connection string."""
        if self.config.get("url"):
            return self.config["url"]
        return "sqlite:///./gridcrud.db"

    def validate_config(self) -> bool:
        """Validate SQLite configuration."""
        url = self.config.get("url")
        if url and not url.startswith("sqlite://"):
            raise ValueError(f"Invalid SQLite URL format: {url}")
        return True

    def describe_columns(self, table: str) -> List[Dict[str, Any]]:
        """Describe columns via PRAGMA table_info, folding CHECK ... IN lists into enum types."""
        rows = self.fetch_all(f"PRAGMA table_info({self.quote(table)})")

        create_sql = self.fetch_value(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", [table]
        ) or ""
        enum_types = {
            match.group(1): f"enum({','.join(v.strip() for v in match.group(2).split(','))})"
            for match in _CHECK_IN.finditer(create_sql)
        }

        primary_keys = [row["name"] for row in rows if row["pk"]]
        columns = []
        for row in rows:
            declared = row["type"] or ""
            is_pk = bool(row["pk"])
            columns.append({
                "name": row["name"],
                "type": enum_types.get(row["name"], declared),
                "primary_key": is_pk,
                # Only a lone INTEGER PRIMARY KEY aliases the rowid
                "auto_increment": is_pk and len(primary_keys) == 1 and declared.upper() == "INTEGER",
                "nullable": not row["notnull"] and not is_pk,
            })
        return columns
