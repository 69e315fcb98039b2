"""
Abstract base class for database implementations.

Defines the interface every backend implements, plus the statement gateway
shared by all of them: statements are written with positional ``?``
placeholders and executed through SQLAlchemy with named bind parameters.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from ..errors import StorageError

logger = logging.getLogger(__name__)


def bind_positional(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Rewrite ``?`` placeholders into named binds understood by ``text()``.

    Placeholders inside quoted literals or quoted identifiers are left alone.

    Args:
        sql: Statement text using ``?`` placeholders
        params: Ordered parameter values

    Returns:
        Tuple of (rewritten statement, bind dictionary)

    Raises:
        StorageError: If the placeholder count does not match the parameters
    """
    parts: List[str] = []
    bound: Dict[str, Any] = {}
    quote = None
    index = 0

    for char in sql:
        if quote:
            parts.append(char)
            if char == quote:
                quote = None
        elif char in ("'", '"', "`"):
            quote = char
            parts.append(char)
        elif char == "?":
            if index >= len(params):
                raise StorageError("Statement has more placeholders than parameters")
            name = f"p{index}"
            bound[name] = params[index]
            parts.append(f":{name}")
            index += 1
        else:
            parts.append(char)

    if index != len(params):
        raise StorageError("Statement has fewer placeholders than parameters")

    return "".join(parts), bound


class Transaction:
    """
    Statement gateway bound to one open connection.

    Everything run through it commits together when the enclosing
    ``DatabaseInterface.transaction()`` block exits normally, and rolls
    back together when the block raises.
    """

    def __init__(self, database: "DatabaseInterface", connection: Connection):
        self.database = database
        self.connection = connection

    def _run(self, sql: str, params: Sequence[Any]):
        statement, bound = bind_positional(sql, params)
        try:
            return self.connection.execute(text(statement), bound)
        except SQLAlchemyError as e:
            self.database._log_failure(sql, e)
            raise StorageError("Database statement failed") from e

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        row = self._run(sql, params).mappings().first()
        return dict(row) if row is not None else None

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        return self._run(sql, params).scalar()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Returns the number of affected rows."""
        return self._run(sql, params).rowcount


class DatabaseInterface(ABC):
    """Abstract interface for database implementations."""

    # Substituted for the NOW() marker in INSERT and UPDATE statements
    NOW_EXPRESSION = "CURRENT_TIMESTAMP"

    def __init__(self, config: dict):
        """
        Initialize the database with configuration.

        Args:
            config: Database configuration dictionary
        """
        self.config = config
        self._engine = None

    @property
    def engine(self) -> Engine:
        """Get the database engine, creating it if necessary."""
        if self._engine is None:
            self._engine = self.create_engine()
        return self._engine

    @abstractmethod
    def create_engine(self) -> Engine:
        """Create and configure the database engine."""
        pass

    @abstractmethod
    def get_connection_string(self) -> str:
        """Get the connection string for this database."""
        pass

    @abstractmethod
    def validate_config(self) -> bool:
        """Validate the database configuration."""
        pass

    @abstractmethod
    def describe_columns(self, table: str) -> List[Dict[str, Any]]:
        """
        Describe a table's columns in declaration order.

        Each entry carries ``name``, ``type`` (the raw declared type string),
        ``primary_key``, ``auto_increment`` and ``nullable``.
        """
        pass

    def create_db_and_tables(self) -> None:
        """Create the tables owned by gridcrud itself (the audit trail)."""
        from .. import models  # noqa: F401  registers the table models

        SQLModel.metadata.create_all(self.engine)
        logging.info("Created gridcrud tables")

    def quote(self, identifier: str) -> str:
        """Quote an identifier using the dialect's rules."""
        return self.engine.dialect.identifier_preparer.quote_identifier(identifier)

    def has_table(self, table: str) -> bool:
        try:
            return inspect(self.engine).has_table(table)
        except SQLAlchemyError as e:
            logger.error(f"Could not inspect table {table}: {e.__class__.__name__}")
            raise StorageError("Could not inspect the database schema") from e

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dictionary."""
        statement, bound = bind_positional(sql, params)
        try:
            with self.engine.connect() as connection:
                result = connection.execute(text(statement), bound)
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            self._log_failure(sql, e)
            raise StorageError("Database query failed") from e

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a query and return the first column of the first row, or None."""
        statement, bound = bind_positional(sql, params)
        try:
            with self.engine.connect() as connection:
                return connection.execute(text(statement), bound).scalar()
        except SQLAlchemyError as e:
            self._log_failure(sql, e)
            raise StorageError("Database query failed") from e

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """
        Run a data-modifying statement in its own transaction.

        Returns:
            Number of affected rows
        """
        statement, bound = bind_positional(sql, params)
        try:
            with self.engine.begin() as connection:
                result = connection.execute(text(statement), bound)
                return result.rowcount
        except SQLAlchemyError as e:
            self._log_failure(sql, e)
            raise StorageError("Database statement failed") from e

    def insert(self, sql: str, params: Sequence[Any] = (), primary_key: Optional[str] = None) -> Any:
        """
        Run an INSERT and return the generated primary key value.

        Args:
            sql: INSERT statement
            params: Ordered parameter values
            primary_key: Primary key column, used by backends that need it to report the new id
        """
        statement, bound = bind_positional(sql, params)
        try:
            with self.engine.begin() as connection:
                result = connection.execute(text(statement), bound)
                return result.lastrowid
        except SQLAlchemyError as e:
            self._log_failure(sql, e)
            raise StorageError("Database insert failed") from e

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run several statements on one connection as a single transaction.

        Any exception raised inside the block rolls every statement back
        and propagates unchanged.

        Raises:
            StorageError: If the transaction cannot be opened or committed
        """
        try:
            with self.engine.begin() as connection:
                yield Transaction(self, connection)
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed ({e.__class__.__name__})")
            raise StorageError("Database transaction failed") from e

    def _log_failure(self, sql: str, error: Exception) -> None:
        # SQL text only, never parameter values
        logger.error(f"Statement failed ({error.__class__.__name__}): {sql}")

    def close(self) -> None:
        """Close database connections."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
