"""Flush coordinator — persists buffered edits and restores snapshots.

Every write for a draft identity goes through one ``asyncio.Lock`` keyed by
``draft_id``: each operation reads the prior row and the snapshot count before
writing, so two of them interleaving on one identity could hand out the same
version or miscount the ring.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from smriti.database import DraftStore
from smriti.models.draft import CONTENT_FIELDS, DRAFT_FIELDS, Draft
from smriti.services import draft_repository
from smriti.services.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class FlushCoordinator:
    def __init__(
        self,
        store: DraftStore,
        snapshot_limit: int,
        *,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        if snapshot_limit < 1:
            raise ValueError("snapshot_limit must be at least 1")
        self.store = store
        self.snapshot_limit = snapshot_limit
        self._now = now
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, draft_id: str) -> asyncio.Lock:
        """Get or create the serialization lock for one draft identity."""
        lock = self._locks.get(draft_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[draft_id] = lock
        return lock

    async def flush(self, draft_id: str, update: dict[str, Any]) -> Draft | None:
        """Merge ``update`` into the draft row, append a snapshot and trim the ring.

        Returns the new draft row, or ``None`` when there was nothing to write.
        Raises :class:`StorageFailure` after a full rollback.
        """
        fields = {name: value for name, value in update.items() if name in DRAFT_FIELDS}
        if not fields:
            return None

        async with self.lock_for(draft_id):
            try:
                async with self.store.transaction() as db:
                    prev = await draft_repository.get_draft(db, draft_id)
                    base = prev.fields() if prev else {}
                    next_fields = {
                        name: fields[name] if name in fields else base.get(name)
                        for name in DRAFT_FIELDS
                    }
                    version = (prev.version if prev else 0) + 1
                    now = self._now()

                    draft = await draft_repository.upsert_draft(
                        db, draft_id, next_fields, updated_at=now, version=version
                    )
                    await draft_repository.add_snapshot(db, draft_id, next_fields, created_at=now)

                    count = await draft_repository.count_snapshots(db, draft_id)
                    evicted = await draft_repository.evict_oldest_snapshots(
                        db, draft_id, count - self.snapshot_limit
                    )
            except SQLAlchemyError as exc:
                logger.warning("Flush of draft '%s' rolled back: %s", draft_id, exc)
                raise StorageFailure(draft_id, exc, operation="flush") from exc

        logger.debug("Flushed draft '%s' → version %d (%s)", draft_id, version, ", ".join(sorted(fields)))
        if evicted:
            logger.info("Evicted %d snapshot(s) of draft '%s': %s", len(evicted), draft_id, evicted)
        return draft

    async def restore(self, draft_id: str, snapshot_id: int) -> Draft | None:
        """Make a snapshot's content the live draft as a new version.

        Naming fields are kept from the current row. No snapshot is written or
        evicted. Returns ``None`` if the snapshot does not exist for this draft.
        """
        async with self.lock_for(draft_id):
            try:
                async with self.store.transaction() as db:
                    snapshot = await draft_repository.get_snapshot(db, snapshot_id)
                    if snapshot is None or snapshot.draft_id != draft_id:
                        logger.info("Restore of draft '%s': snapshot %s not found", draft_id, snapshot_id)
                        return None

                    prev = await draft_repository.get_draft(db, draft_id)
                    next_fields = prev.fields() if prev else {}
                    for name in CONTENT_FIELDS:
                        next_fields[name] = copy.deepcopy(getattr(snapshot, name))
                    version = (prev.version if prev else 0) + 1

                    draft = await draft_repository.upsert_draft(
                        db, draft_id, next_fields, updated_at=self._now(), version=version
                    )
            except SQLAlchemyError as exc:
                logger.warning("Restore of draft '%s' rolled back: %s", draft_id, exc)
                raise StorageFailure(draft_id, exc, operation="restore") from exc

        logger.info("Restored draft '%s' from snapshot %d → version %d", draft_id, snapshot_id, version)
        return draft
