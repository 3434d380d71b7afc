"""Draft request/response schemas."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Selection(BaseModel):
    """Editor selection range; ``from <= to`` is the editor's convention, not checked here."""

    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(..., ge=0, alias="from")
    to: int = Field(..., ge=0)


class DraftUpdate(BaseModel):
    """Partial field update from the shell or the editor. Unset fields are left alone."""

    project_name: str | None = None
    prompt_name: str | None = None
    doc_json: Any | None = None
    selection: Selection | None = None

    def to_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=True)


class DraftResponse(BaseModel):
    id: str
    project_name: str | None = None
    prompt_name: str | None = None
    doc_json: Any | None = None
    selection: dict[str, int] | None = None
    updated_at: datetime
    version: int

    model_config = {"from_attributes": True}


class SnapshotResponse(BaseModel):
    id: int
    draft_id: str
    doc_json: Any | None = None
    selection: dict[str, int] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AutosaveStatus(BaseModel):
    draft_id: str
    saving: bool = False
    error: str | None = None
    pending: list[str] = []  # buffered, not yet flushed field names
    draft: DraftResponse | None = None


class LifecycleSignal(StrEnum):
    """Host signals after which the page may become unreachable."""

    HIDDEN = "hidden"  # reversible: tab hidden, app backgrounded
    DESTROYED = "destroyed"  # irreversible: pagehide, shutdown


class LifecycleEvent(BaseModel):
    signal: LifecycleSignal
