"""Autosave sessions — debounced, lifecycle-aware persistence for one draft.

An :class:`AutosaveSession` owns the update buffer and debounce timer of a
single draft identity. Flushes and restores are queued one after another per
session (each waits for the previous to finish), and the coordinator's
per-identity lock serializes them against any other writer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from smriti.database import DraftStore
from smriti.models.draft import Draft
from smriti.schemas.draft import AutosaveStatus, DraftResponse, DraftUpdate, LifecycleSignal
from smriti.services import draft_repository
from smriti.services.exceptions import StorageFailure
from smriti.services.flush_coordinator import FlushCoordinator
from smriti.services.lifecycle import HostLifecycle, LifecycleSource
from smriti.services.timer import DebounceTimer, Scheduler
from smriti.services.update_buffer import UpdateBuffer

logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[["AutosaveSession"], None]


class AutosaveSession:
    def __init__(
        self,
        draft_id: str,
        coordinator: FlushCoordinator,
        *,
        delay: float,
        lifecycle: LifecycleSource | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.draft_id = draft_id
        self.coordinator = coordinator
        self.lifecycle = lifecycle

        # Observable state
        self.draft: Draft | None = None
        self.saving = False
        self.error: Exception | None = None

        self._buffer = UpdateBuffer(delay, self._on_timer, DebounceTimer(scheduler))
        self._tail: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Subscribe to host signals and hydrate the current draft."""
        if self.lifecycle is not None and self._unsubscribe is None:
            self._unsubscribe = self.lifecycle.on_becoming_unreachable(self._on_lifecycle)
        await self.load()

    async def load(self) -> Draft | None:
        try:
            async with self.coordinator.store.session() as db:
                self.draft = await draft_repository.get_draft(db, self.draft_id)
        except SQLAlchemyError as exc:
            logger.warning("Loading draft '%s' failed: %s", self.draft_id, exc)
            self.error = StorageFailure(self.draft_id, exc, operation="load")
        self._notify()
        return self.draft

    async def close(self) -> None:
        """Teardown: stop listening, flush whatever is still buffered, wait for queued work."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._buffer.cancel()
        if not self._buffer.is_empty:
            logger.info("Draft '%s' closing with unsaved edits — flushing", self.draft_id)
            self._spawn_flush()
        await self.drain()

    async def drain(self) -> None:
        """Wait until every queued flush/restore has finished (errors are left on ``error``)."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    # ── Editing surface ──────────────────────────────────────────────

    @property
    def pending(self) -> dict[str, Any]:
        return self._buffer.pending

    def on_change(self, update: DraftUpdate | dict[str, Any]) -> None:
        """Buffer a partial update and restart the quiet-period timer."""
        if isinstance(update, DraftUpdate):
            update = update.to_fields()
        if not update:
            return
        self._buffer.merge(update)
        self._notify()

    async def flush_now(self) -> Draft | None:
        """Forced flush: skip the remaining delay and persist what is buffered.

        Raises :class:`StorageFailure` if this flush fails.
        """
        self._buffer.cancel()
        task = self._spawn_flush()
        if task is None:
            # Nothing buffered; still let queued work land before reporting
            await self.drain()
            return self.draft
        return await task

    async def restore_from_snapshot(self, snapshot_id: int) -> bool:
        """Restore a snapshot as the next version. False if it does not exist."""

        async def op() -> bool:
            try:
                draft = await self.coordinator.restore(self.draft_id, snapshot_id)
            except StorageFailure as exc:
                self.error = exc
                self._notify()
                raise
            if draft is None:
                return False
            self.draft = draft
            self._notify()
            return True

        return await self._enqueue(op)

    # ── Observers ────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def status(self) -> AutosaveStatus:
        return AutosaveStatus(
            draft_id=self.draft_id,
            saving=self.saving,
            error=str(self.error) if self.error else None,
            pending=sorted(self._buffer.pending),
            draft=DraftResponse.model_validate(self.draft) if self.draft else None,
        )

    # ── Internals ────────────────────────────────────────────────────

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Autosave listener failed for draft '%s'", self.draft_id)

    def _on_timer(self) -> None:
        self._spawn_flush()

    def _on_lifecycle(self, signal: LifecycleSignal) -> None:
        logger.debug("Draft '%s' received %s — forcing flush", self.draft_id, signal.value)
        self._buffer.cancel()
        self._spawn_flush()

    def _spawn_flush(self) -> asyncio.Task | None:
        # Take synchronously: edits made while this flush runs go to a fresh buffer
        update = self._buffer.take()
        if not update:
            return None
        return self._enqueue(lambda: self._persist(update))

    def _enqueue(self, op: Callable[[], Awaitable[T]]) -> asyncio.Task:
        previous = self._tail

        async def run() -> T:
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            return await op()

        task = asyncio.get_running_loop().create_task(run())
        self._tail = task
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._tail is task:
            self._tail = None
        if not task.cancelled():
            # Mark retrieved; failures are already on ``error``
            task.exception()

    async def _persist(self, update: dict[str, Any]) -> Draft | None:
        self.saving = True
        self.error = None
        self._notify()
        try:
            draft = await self.coordinator.flush(self.draft_id, update)
            if draft is not None:
                self.draft = draft
            return self.draft
        except StorageFailure as exc:
            # Buffered edits are dropped; the editor still holds them
            self.error = exc
            raise
        finally:
            self.saving = False
            self._notify()


class AutosaveManager:
    """Registry of autosave sessions sharing one store and coordinator."""

    def __init__(
        self,
        store: DraftStore,
        *,
        delay: float,
        snapshot_limit: int,
        scheduler: Scheduler | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.delay = delay
        self.scheduler = scheduler
        self.coordinator = FlushCoordinator(store, snapshot_limit, now=now)
        self._sessions: dict[str, AutosaveSession] = {}
        self._lifecycles: dict[str, HostLifecycle] = {}

    def __contains__(self, draft_id: str) -> bool:
        return draft_id in self._sessions

    async def get(self, draft_id: str) -> AutosaveSession:
        session = self._sessions.get(draft_id)
        if session is None:
            lifecycle = HostLifecycle()
            session = AutosaveSession(
                draft_id,
                self.coordinator,
                delay=self.delay,
                lifecycle=lifecycle,
                scheduler=self.scheduler,
            )
            # Register before awaiting so concurrent callers share the session
            self._sessions[draft_id] = session
            self._lifecycles[draft_id] = lifecycle
            await session.start()
        return session

    async def signal(self, draft_id: str, signal: LifecycleSignal) -> None:
        lifecycle = self._lifecycles.get(draft_id)
        if lifecycle is None:
            return
        lifecycle.emit(signal)
        if signal is LifecycleSignal.DESTROYED:
            # Irreversible: the page is gone, tear its session down
            await self.release(draft_id)

    async def release(self, draft_id: str) -> None:
        """Close one session (flushing leftovers) and forget it."""
        session = self._sessions.pop(draft_id, None)
        self._lifecycles.pop(draft_id, None)
        if session is not None:
            await session.close()
            logger.debug("Released autosave session for draft '%s'", draft_id)

    async def close_all(self) -> None:
        for lifecycle in self._lifecycles.values():
            lifecycle.emit(LifecycleSignal.DESTROYED)
        sessions = list(self._sessions.values())
        await asyncio.gather(*(session.close() for session in sessions))
        self._sessions.clear()
        self._lifecycles.clear()
        logger.info("Closed %d autosave session(s)", len(sessions))
