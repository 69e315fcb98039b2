"""
Audit trail for changes made through a grid.

Auditing is fire-and-forget: a sink never raises into the operation that
called it. Failures are logged and the primary write still stands.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session

from .models import AuditRecord

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def snapshot(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """A JSON-safe copy of a row."""
    if not values:
        return None
    return {str(key): _jsonable(value) for key, value in values.items()}


def changed_fields(old_values: Dict[str, Any], new_values: Dict[str, Any]) -> List[str]:
    """Names of the fields in ``new_values`` whose value differs from ``old_values``."""
    changes = []
    for key, value in new_values.items():
        old = old_values.get(key)
        if old is None and value is None:
            continue
        if old is None or value is None or str(old) != str(value):
            changes.append(key)
    return changes


class AuditSink(ABC):
    """Receives notice of every insert, update and delete."""

    @abstractmethod
    def log_insert(self, table: str, record_id: Any, new_values: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_update(self, table: str, record_id: Any, old_values: Dict[str, Any], new_values: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def log_delete(self, table: str, record_id: Any, old_values: Optional[Dict[str, Any]] = None) -> None:
        pass


class NullAuditSink(AuditSink):
    """Discards everything."""

    def log_insert(self, table: str, record_id: Any, new_values: Dict[str, Any]) -> None:
        pass

    def log_update(self, table: str, record_id: Any, old_values: Dict[str, Any], new_values: Dict[str, Any]) -> None:
        pass

    def log_delete(self, table: str, record_id: Any, old_values: Optional[Dict[str, Any]] = None) -> None:
        pass


class DatabaseAuditSink(AuditSink):
    """
    Writes AuditRecord rows through the grid's own database.

    Args:
        database: DatabaseInterface whose engine holds the audit table
        user_id: Identifier of the acting user, if any
        ip_address: Client address of the current request
        user_agent: Client user agent of the current request
        exclude_tables: Tables never audited
        include_only_tables: When non-empty, the only tables audited
        metadata: Extra context stored with every record
    """

    def __init__(
        self,
        database,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        exclude_tables: Sequence[str] = (),
        include_only_tables: Sequence[str] = (),
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.database = database
        self.user_id = user_id
        self.ip_address = ip_address
        self.user_agent = user_agent
        self.exclude_tables = set(exclude_tables)
        self.include_only_tables = set(include_only_tables)
        self.metadata = metadata

    def should_audit(self, table: str) -> bool:
        if table == AuditRecord.__tablename__:
            return False
        if table in self.exclude_tables:
            return False
        if self.include_only_tables:
            return table in self.include_only_tables
        return True

    def log_insert(self, table: str, record_id: Any, new_values: Dict[str, Any]) -> None:
        if not self.should_audit(table):
            return
        self._write(table, record_id, "INSERT", new_values=snapshot(new_values))

    def log_update(self, table: str, record_id: Any, old_values: Dict[str, Any], new_values: Dict[str, Any]) -> None:
        if not self.should_audit(table):
            return
        changes = changed_fields(old_values or {}, new_values or {})
        if not changes:
            return
        self._write(
            table,
            record_id,
            "UPDATE",
            old_values=snapshot(old_values),
            new_values=snapshot(new_values),
            changed=changes,
        )

    def log_delete(self, table: str, record_id: Any, old_values: Optional[Dict[str, Any]] = None) -> None:
        if not self.should_audit(table):
            return
        self._write(table, record_id, "DELETE", old_values=snapshot(old_values))

    def _write(
        self,
        table: str,
        record_id: Any,
        action: str,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        changed: Optional[List[str]] = None,
    ) -> None:
        try:
            record = AuditRecord(
                table_name=table,
                record_id=str(record_id),
                action=action,
                old_values=old_values,
                new_values=new_values,
                changed_fields=changed,
                user_id=self.user_id,
                ip_address=self.ip_address,
                user_agent=self.user_agent,
                extra=self.metadata,
            )
            with Session(self.database.engine) as session:
                session.add(record)
                session.commit()
            logger.debug(f"Audit record created: {action} on {table}:{record_id}")
        except Exception as e:
            logger.error(f"Failed to create audit record for {action} on {table}:{record_id}: {e}")
