"""Draft repository — typed access to the drafts and snapshots tables.

All functions run inside the caller's session/transaction and never commit;
the flush coordinator owns transaction boundaries.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from smriti.models.draft import CONTENT_FIELDS, DRAFT_FIELDS, Draft
from smriti.models.snapshot import Snapshot


async def get_draft(db: AsyncSession, draft_id: str) -> Draft | None:
    return await db.get(Draft, draft_id)


async def upsert_draft(
    db: AsyncSession,
    draft_id: str,
    fields: dict[str, Any],
    *,
    updated_at: datetime,
    version: int,
) -> Draft:
    """Insert or overwrite the single row for ``draft_id``."""
    draft = await db.get(Draft, draft_id)
    if draft is None:
        draft = Draft(id=draft_id)
        db.add(draft)
    for name in DRAFT_FIELDS:
        setattr(draft, name, fields.get(name))
    draft.updated_at = updated_at
    draft.version = version
    await db.flush()
    return draft


async def add_snapshot(
    db: AsyncSession, draft_id: str, fields: dict[str, Any], *, created_at: datetime
) -> Snapshot:
    # Deep copy so later mutation of the live value never leaks into history
    content = {name: copy.deepcopy(fields.get(name)) for name in CONTENT_FIELDS}
    snapshot = Snapshot(draft_id=draft_id, created_at=created_at, **content)
    db.add(snapshot)
    await db.flush()
    return snapshot


async def count_snapshots(db: AsyncSession, draft_id: str) -> int:
    stmt = select(func.count()).select_from(Snapshot).where(Snapshot.draft_id == draft_id)
    result = await db.execute(stmt)
    return result.scalar_one()


async def evict_oldest_snapshots(db: AsyncSession, draft_id: str, count: int) -> list[int]:
    """Delete the ``count`` oldest snapshots (by created_at, then id). Returns deleted ids."""
    if count <= 0:
        return []
    stmt = (
        select(Snapshot.id)
        .where(Snapshot.draft_id == draft_id)
        .order_by(Snapshot.created_at.asc(), Snapshot.id.asc())
        .limit(count)
    )
    result = await db.execute(stmt)
    ids = list(result.scalars().all())
    if ids:
        await db.execute(delete(Snapshot).where(Snapshot.id.in_(ids)))
    return ids


async def get_snapshot(db: AsyncSession, snapshot_id: int) -> Snapshot | None:
    return await db.get(Snapshot, snapshot_id)


async def list_snapshots(
    db: AsyncSession, draft_id: str, limit: int | None = None
) -> list[Snapshot]:
    stmt = (
        select(Snapshot)
        .where(Snapshot.draft_id == draft_id)
        .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
