"""Update buffer — pending field edits for one draft plus its debounce timer."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from smriti.services.timer import DebounceTimer


class UpdateBuffer:
    """Coalesces partial updates; every ``merge`` restarts the quiet period.

    ``merge`` and ``take`` never await, so on a single event loop they are
    atomic with respect to each other and to timer callbacks.
    """

    def __init__(self, delay: float, on_expire: Callable[[], Any], timer: DebounceTimer | None = None) -> None:
        self.delay = delay
        self._on_expire = on_expire
        self._timer = timer or DebounceTimer()
        self._pending: dict[str, Any] = {}

    @property
    def pending(self) -> dict[str, Any]:
        return dict(self._pending)

    @property
    def is_empty(self) -> bool:
        return not self._pending

    @property
    def armed(self) -> bool:
        return self._timer.armed

    def merge(self, update: dict[str, Any]) -> None:
        self._pending = {**self._pending, **update}
        self._timer.arm(self.delay, self._on_expire)

    def take(self) -> dict[str, Any]:
        """Hand the buffered edits to a flush and start a fresh buffer."""
        taken, self._pending = self._pending, {}
        return taken

    def cancel(self) -> None:
        self._timer.cancel()
