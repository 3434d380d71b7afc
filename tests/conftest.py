"""Shared fixtures: isolated in-memory store, virtual clock, app client."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from smriti.config import Settings
from smriti.database import DraftStore
from smriti.main import create_app
from smriti.services.autosave import AutosaveManager
from smriti.services.flush_coordinator import FlushCoordinator

EPOCH = datetime(2026, 1, 1, 12, 0, 0)


class _VirtualHandle:
    def __init__(self, when: float, seq: int, callback, args) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Deterministic scheduler + wall clock. Nothing fires until ``advance``."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.start = start
        self.elapsed = 0.0
        self._timers: list[_VirtualHandle] = []
        self._seq = 0

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def at(self, seconds: float) -> datetime:
        return self.start + timedelta(seconds=seconds)

    def call_later(self, delay, callback, *args) -> _VirtualHandle:
        self._seq += 1
        handle = _VirtualHandle(self.elapsed + delay, self._seq, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> list[_VirtualHandle]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        while True:
            due = sorted(
                (t for t in self._timers if not t.cancelled and t.when <= target),
                key=lambda t: (t.when, t.seq),
            )
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.elapsed = timer.when
            timer.callback(*timer.args)
        self.elapsed = target


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest_asyncio.fixture
async def store():
    draft_store = DraftStore("sqlite+aiosqlite://")
    await draft_store.open()
    yield draft_store
    await draft_store.close()


@pytest.fixture
def coordinator(store, clock) -> FlushCoordinator:
    return FlushCoordinator(store, snapshot_limit=3, now=clock.now)


@pytest_asyncio.fixture
async def manager(store, clock):
    autosave = AutosaveManager(store, delay=1.0, snapshot_limit=3, scheduler=clock, now=clock.now)
    yield autosave
    await autosave.close_all()


@pytest.fixture
def test_settings() -> Settings:
    # Long delay: HTTP tests flush explicitly or through lifecycle signals
    return Settings(env="test", autosave_delay_ms=60_000, snapshot_limit=3)


@pytest_asyncio.fixture
async def client(test_settings, store):
    app = create_app(test_settings, store=store)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
