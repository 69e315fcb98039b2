"""
Demo data: a small contacts table and the grid that edits it.
"""

import logging
from typing import Optional

from fastapi import Request

from .api import GridRegistry
from .audit import AuditSink, DatabaseAuditSink
from .config import Config
from .database import DatabaseInterface, SQLiteDatabase
from .grid import Grid
from .scaffold import build_dynamic_grid

DEMO_TABLE = "tblContacts"

DEMO_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {DEMO_TABLE} (
    pkID INTEGER PRIMARY KEY AUTOINCREMENT,
    fldName VARCHAR(100) NOT NULL DEFAULT '',
    fldEmail VARCHAR(150),
    fldPhone VARCHAR(30),
    fldStatus TEXT CHECK (fldStatus IN ('active','pending','archived')) DEFAULT 'pending',
    fldActive INTEGER NOT NULL DEFAULT 1,
    fldNotes TEXT,
    fldCreatedDate DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""

DEMO_ROWS = [
    ("Ada Lovelace", "ada@example.com", "555-0100", "active", 1, "First programmer"),
    ("Charles Babbage", "charles@example.com", "555-0101", "pending", 1, ""),
    ("Grace Hopper", "grace@example.com", "555-0102", "archived", 0, "Compiler pioneer"),
]


def seed_demo(database: DatabaseInterface) -> bool:
    """
    Create and fill the demo contacts table if it is missing.

    Returns:
        True if the table was created
    """
    if not isinstance(database, SQLiteDatabase):
        logging.warning("Demo seeding only supports SQLite, skipping")
        return False
    if database.has_table(DEMO_TABLE):
        logging.info(f"Demo table {DEMO_TABLE} already exists")
        return False

    database.execute(DEMO_SCHEMA)
    for row in DEMO_ROWS:
        database.execute(
            f"INSERT INTO {DEMO_TABLE} (fldName, fldEmail, fldPhone, fldStatus, fldActive, fldNotes) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            row,
        )
    logging.info(f"Seeded demo table {DEMO_TABLE} with {len(DEMO_ROWS)} rows")
    return True


def audit_sink_for(database: DatabaseInterface, request: Request) -> Optional[AuditSink]:
    """A database audit sink carrying the request's client details, when auditing is on."""
    if not Config.is_audit_enabled():
        return None
    return DatabaseAuditSink(
        database,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def register_demo(registry: GridRegistry, database: DatabaseInterface) -> None:
    def contacts(request: Request) -> Grid:
        grid = build_dynamic_grid(
            database,
            DEMO_TABLE,
            title="Contact",
            rows_per_page=10,
            audit=audit_sink_for(database, request),
        )
        grid.add_search_fields("fldName", "fldEmail")
        grid.add_filter_box("fldStatus")
        grid.set_textarea_height("fldNotes", 80)
        return grid

    registry.register("contacts", contacts, title="Contacts")
