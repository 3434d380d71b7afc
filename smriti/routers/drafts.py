"""Draft endpoints — buffered edits, forced flushes, history and restore."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smriti.database import get_db
from smriti.schemas.draft import (
    AutosaveStatus,
    DraftResponse,
    DraftUpdate,
    LifecycleEvent,
    SnapshotResponse,
)
from smriti.services import draft_repository
from smriti.services.autosave import AutosaveManager, AutosaveSession
from smriti.services.exceptions import StorageFailure

router = APIRouter()


def get_manager(request: Request) -> AutosaveManager:
    return request.app.state.autosave


async def get_session(draft_id: str, manager: AutosaveManager = Depends(get_manager)) -> AutosaveSession:
    return await manager.get(draft_id)


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(draft_id: str, db: AsyncSession = Depends(get_db)):
    draft = await draft_repository.get_draft(db, draft_id)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


@router.patch("/{draft_id}", response_model=AutosaveStatus, status_code=202)
async def update_draft(
    body: DraftUpdate, session: AutosaveSession = Depends(get_session)
):
    session.on_change(body)
    return session.status()


@router.post("/{draft_id}/flush", response_model=AutosaveStatus)
async def flush_draft(session: AutosaveSession = Depends(get_session)):
    """Manual save: persist buffered edits now."""
    try:
        await session.flush_now()
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return session.status()


@router.post("/{draft_id}/lifecycle", response_model=AutosaveStatus)
async def lifecycle_signal(
    draft_id: str,
    body: LifecycleEvent,
    manager: AutosaveManager = Depends(get_manager),
    session: AutosaveSession = Depends(get_session),
):
    """Host page is being hidden or torn down — flush without waiting for the timer."""
    await manager.signal(draft_id, body.signal)
    await session.drain()
    return session.status()


@router.get("/{draft_id}/status", response_model=AutosaveStatus)
async def get_status(session: AutosaveSession = Depends(get_session)):
    return session.status()


@router.get("/{draft_id}/snapshots/", response_model=list[SnapshotResponse])
async def list_snapshots(
    draft_id: str,
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    return await draft_repository.list_snapshots(db, draft_id, limit=limit)


@router.post("/{draft_id}/restore/{snapshot_id}", response_model=DraftResponse)
async def restore_snapshot(
    snapshot_id: int, session: AutosaveSession = Depends(get_session)
):
    try:
        restored = await session.restore_from_snapshot(snapshot_id)
    except StorageFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not restored:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return session.draft
