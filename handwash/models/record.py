"""Single-table record model backing the key-value store."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Record(SQLModel, table=True):
    __tablename__ = "records"

    pk: str = Field(primary_key=True)
    sk: str = Field(primary_key=True)
    # Secondary index projection (GSI1)
    gsi1pk: Optional[str] = Field(default=None, index=True)
    gsi1sk: Optional[str] = Field(default=None, index=True)
    entity: Optional[str] = Field(default=None, index=True)  # 'FAMILY' | 'INVITE' | 'MEMBERSHIP' | ...
    data: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
