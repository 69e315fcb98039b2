"""
MySQL/MariaDB database implementation.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool
from sqlmodel import create_engine

from .base import DatabaseInterface


class MySQLDatabase(DatabaseInterface):
    """MySQL/MariaDB database implementation with connection pooling."""

    NOW_EXPRESSION = "NOW()"

    def create_engine(self) -> Engine:
        """Create and configure the MySQL engine with connection pooling."""
        connection_string = self.get_connection_string()

        engine_kwargs = {
            "poolclass": QueuePool,
            "pool_size": self.config.get("pool_size", 10),
            "max_overflow": self.config.get("max_overflow", 20),
            "pool_pre_ping": True,  # Validate connections before use
            "pool_recycle": self.config.get("pool_recycle", 3600),
            "connect_args": {"charset": self.config.get("charset", "utf8mb4")},
        }

        engine = create_engine(connection_string, **engine_kwargs)
        logging.info(f"Created MySQL engine with connection pooling (pool_size={engine_kwargs['pool_size']})")
        return engine

    def get_connection_string(self) -> str:
        """Get the MySQL connection string, defaulting to the PyMySQL driver."""
        url = self.config.get("url")
        if not url:
            raise ValueError("MySQL requires a connection URL or host/name settings")
        if url.startswith("mysql://"):
            url = url.replace("mysql://", "mysql+pymysql://", 1)
        elif url.startswith("mariadb://"):
            url = url.replace("mariadb://", "mysql+pymysql://", 1)
        return url

    def validate_config(self) -> bool:
        """Validate MySQL configuration."""
        url = self.config.get("url")
        if not url or not url.startswith(("mysql", "mariadb")):
            raise ValueError(f"Invalid MySQL URL format: {url}")
        return True

    def describe_columns(self, table: str) -> List[Dict[str, Any]]:
        """Describe columns via SHOW COLUMNS; the Type column keeps enum('a','b') verbatim."""
        rows = self.fetch_all(f"SHOW COLUMNS FROM {self.quote(table)}")
        return [
            {
                "name": row["Field"],
                "type": row["Type"],
                "primary_key": row["Key"] == "PRI",
                "auto_increment": "auto_increment" in (row.get("Extra") or "").lower(),
                "nullable": row["Null"] == "YES",
            }
            for row in rows
        ]
