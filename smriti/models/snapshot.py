"""Snapshot ORM model — append-only content history per draft."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from smriti.database import Base


class Snapshot(Base):
    __tablename__ = "snapshots"
    __table_args__ = (
        Index("ix_snapshots_draft_created", "draft_id", "created_at", "id"),
        {"sqlite_autoincrement": True},  # ids are never reused after eviction
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    draft_id: Mapped[str] = mapped_column(String(128), index=True)
    doc_json: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    selection: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)
