"""Draft ORM model — the single live row per draft identity."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from smriti.database import Base

# Attributes a flush may set; anything else in an update is ignored
DRAFT_FIELDS = ("project_name", "prompt_name", "doc_json", "selection")
# Attributes captured by snapshots and replaced on restore
CONTENT_FIELDS = ("doc_json", "selection")


class Draft(Base):
    __tablename__ = "drafts"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    project_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    prompt_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    doc_json: Mapped[Any | None] = mapped_column(JSON, nullable=True)  # opaque editor DocState
    selection: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # {"from": int, "to": int}
    updated_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)

    def fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in DRAFT_FIELDS}
