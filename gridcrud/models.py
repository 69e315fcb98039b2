from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .config import Config


class AuditRecord(SQLModel, table=True):
    """
    One change made through a grid: an insert, an update or a delete.
    """

    __tablename__ = Config.get_audit_table()

    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str = Field(index=True)
    record_id: str = Field(index=True)
    action: str = Field(index=True)  # "INSERT", "UPDATE" or "DELETE"
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    changed_fields: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    user_id: Optional[str] = Field(default=None, index=True)
    ip_address: Optional[str] = Field(default=None)
    user_agent: Optional[str] = Field(default=None)
    extra: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
