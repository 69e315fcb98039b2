"""
Tests for the audit trail sinks.
"""
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session, select

from gridcrud.audit import DatabaseAuditSink, NullAuditSink, changed_fields, snapshot
from gridcrud.models import AuditRecord


def _records(database):
    with Session(database.engine) as session:
        return session.exec(select(AuditRecord).order_by(AuditRecord.id)).all()


class TestHelpers:

    def test_snapshot_is_json_safe(self):
        values = snapshot({"when": datetime(2024, 1, 2, 3, 4, 5), "price": Decimal("1.50"), "n": 3})
        assert values == {"when": "2024-01-02T03:04:05", "price": "1.50", "n": 3}
        assert snapshot({}) is None

    def test_changed_fields(self):
        assert changed_fields({"a": 1, "b": None}, {"a": "1", "b": None, "c": 2}) == ["c"]
        assert changed_fields({"a": 1}, {"a": 2}) == ["a"]


class TestDatabaseAuditSink:

    def test_insert_update_delete(self, database):
        sink = DatabaseAuditSink(database, user_id="amy", ip_address="10.0.0.1")
        sink.log_insert("contacts", 3, {"pkID": 3, "fldName": "Carol"})
        sink.log_update("contacts", 3, {"fldName": "Carol"}, {"fldName": "Caroline"})
        sink.log_delete("contacts", 3, {"pkID": 3, "fldName": "Caroline"})

        records = _records(database)
        assert [record.action for record in records] == ["INSERT", "UPDATE", "DELETE"]
        assert records[1].changed_fields == ["fldName"]
        assert records[1].old_values == {"fldName": "Carol"}
        assert all(record.user_id == "amy" for record in records)
        assert all(record.record_id == "3" for record in records)

    def test_update_without_changes_is_skipped(self, database):
        sink = DatabaseAuditSink(database)
        sink.log_update("contacts", 1, {"fldName": "Alice"}, {"fldName": "Alice"})
        assert _records(database) == []

    def test_table_filters(self, database):
        sink = DatabaseAuditSink(database, exclude_tables=["products"])
        assert sink.should_audit("contacts")
        assert not sink.should_audit("products")
        assert not sink.should_audit(AuditRecord.__tablename__)

        only = DatabaseAuditSink(database, include_only_tables=["contacts"])
        assert only.should_audit("contacts")
        assert not only.should_audit("categories")

    def test_failures_never_raise(self, database):
        sink = DatabaseAuditSink(database)
        database.execute(f"DROP TABLE {AuditRecord.__tablename__}")
        sink.log_insert("contacts", 9, {"pkID": 9})

    def test_null_sink(self):
        NullAuditSink().log_delete("contacts", 1)
