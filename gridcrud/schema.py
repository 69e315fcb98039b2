"""
Schema introspection and column type classification.

A grid discovers its columns from the live schema on every request. Each
raw declared type (``int(11)``, ``enum('a','b')``, ``varchar(255)``...) is
reduced to a semantic kind that drives editor selection and validation.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import SchemaError, ValidationError

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"[^A-Za-z0-9_]")

_ENUM_VALUE = re.compile(r"'((?:[^']|'')*)'|\"((?:[^\"]|\"\")*)\"")

DECIMAL_MARKERS = ("decimal", "double", "float", "real", "numeric")


class SemanticKind(Enum):
    """What a column holds, as far as editing is concerned."""
    INTEGER = "integer"
    DECIMAL = "decimal"
    ENUM = "enum"
    DATE = "date"
    TEXT = "text"


def classify(raw_type: Optional[str]) -> SemanticKind:
    """
    Map a raw column type to its semantic kind.

    Case-insensitive substring matching, first match wins:
    enum, then int, then the decimal family, then anything mentioning
    date. Everything else, including unknown or empty types, is text.
    """
    lowered = (raw_type or "").lower()
    if "enum" in lowered:
        return SemanticKind.ENUM
    if "int" in lowered:
        return SemanticKind.INTEGER
    if any(marker in lowered for marker in DECIMAL_MARKERS):
        return SemanticKind.DECIMAL
    if "date" in lowered:
        return SemanticKind.DATE
    return SemanticKind.TEXT


def is_long_text(value: Any, threshold: int = 50) -> bool:
    """Whether a plain text cell should edit in a textarea rather than a single-line input."""
    if value is None:
        return False
    return len(str(value)) >= threshold


def enum_values(raw_type: str) -> List[str]:
    """Extract the allowed values from an ``enum('a','b')`` declaration."""
    inner = raw_type[raw_type.find("(") + 1:raw_type.rfind(")")] if "(" in raw_type else ""
    quoted = _ENUM_VALUE.findall(inner)
    if quoted:
        return [
            single.replace("''", "'") if single or not double else double.replace('""', '"')
            for single, double in quoted
        ]
    return [part.strip() for part in inner.split(",") if part.strip()]


def enum_declaration(values: List[str]) -> str:
    """Build an ``enum('a','b')`` type string, doubling quotes inside values."""
    quoted = ",".join("'" + str(value).replace("'", "''") + "'" for value in values)
    return f"enum({quoted})"


def sanitize_identifier(name: Any) -> str:
    """Strip everything except letters, digits and underscores."""
    return IDENTIFIER_PATTERN.sub("", str(name))


def require_identifier(name: Any, what: str = "identifier") -> str:
    """
    Return ``name`` unchanged if it is already a safe identifier.

    Raises:
        ValidationError: If the name is empty or carries any other character
    """
    text = "" if name is None else str(name)
    if not text or sanitize_identifier(text) != text:
        raise ValidationError(f"Invalid {what}: {text!r}", field=text or None)
    return text


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of a table as declared in the schema."""
    name: str
    raw_type: str
    kind: SemanticKind
    primary_key: bool = False
    auto_increment: bool = False
    nullable: bool = True

    @property
    def is_numeric(self) -> bool:
        return self.kind in (SemanticKind.INTEGER, SemanticKind.DECIMAL)

    @property
    def enum_values(self) -> List[str]:
        if self.kind is not SemanticKind.ENUM:
            return []
        return enum_values(self.raw_type)


@dataclass(frozen=True)
class TableDescriptor:
    """A table's name, primary key and ordered columns; immutable once built."""
    name: str
    primary_key: str
    columns: Tuple[ColumnDescriptor, ...] = field(default_factory=tuple)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.columns)

    def column(self, name: str) -> ColumnDescriptor:
        for column in self.columns:
            if column.name == name:
                return column
        raise ValidationError(f"Unknown column '{name}' in table '{self.name}'", field=name)

    def require_column(self, name: Any) -> str:
        """
        Validate a request-supplied column name.

        The name must be a well-formed identifier and a column of this table.
        """
        safe = require_identifier(name, "column name")
        if not self.has_column(safe):
            raise ValidationError(f"Unknown column '{safe}' in table '{self.name}'", field=safe)
        return safe

    @property
    def primary_column(self) -> ColumnDescriptor:
        return self.column(self.primary_key)


def build_descriptor(table: str, described: List[Dict[str, Any]], primary_key: Optional[str] = None) -> TableDescriptor:
    """
    Build a TableDescriptor from a backend's column description.

    The primary key is the one given, else the first column flagged as a
    key, else the first column.
    """
    if not described:
        raise SchemaError(f"Table '{table}' has no columns")

    names = [entry["name"] for entry in described]
    if primary_key is None:
        flagged = [entry["name"] for entry in described if entry.get("primary_key")]
        primary_key = flagged[0] if flagged else names[0]
    elif primary_key not in names:
        raise SchemaError(f"Primary key '{primary_key}' is not a column of '{table}'")

    columns = tuple(
        ColumnDescriptor(
            name=entry["name"],
            raw_type=entry.get("type") or "",
            kind=classify(entry.get("type")),
            primary_key=entry["name"] == primary_key,
            auto_increment=bool(entry.get("auto_increment")) and entry["name"] == primary_key,
            nullable=bool(entry.get("nullable", True)),
        )
        for entry in described
    )
    return TableDescriptor(name=table, primary_key=primary_key, columns=columns)


def introspect_table(database, table: str, primary_key: Optional[str] = None) -> TableDescriptor:
    """
    Read a table's columns from the backing store.

    Args:
        database: DatabaseInterface to read from
        table: Table name
        primary_key: Primary key column; detected when omitted

    Returns:
        TableDescriptor for the table

    Raises:
        ValidationError: If the table name is not a safe identifier
        SchemaError: If the table does not exist or has no columns
    """
    require_identifier(table, "table name")
    if primary_key is not None:
        require_identifier(primary_key, "primary key")

    if not database.has_table(table):
        logger.error(f"Introspection failed: table '{table}' does not exist")
        raise SchemaError(f"Table '{table}' does not exist")

    return build_descriptor(table, database.describe_columns(table), primary_key)
