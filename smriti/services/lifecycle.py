"""Host lifecycle signals — visibility loss and teardown.

Swap the host environment by implementing :class:`LifecycleSource`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from smriti.schemas.draft import LifecycleSignal

logger = logging.getLogger(__name__)

LifecycleCallback = Callable[[LifecycleSignal], None]


class LifecycleSource(ABC):
    """Contract any host environment must satisfy."""

    @abstractmethod
    def on_becoming_unreachable(self, callback: LifecycleCallback) -> Callable[[], None]:
        """Call ``callback`` whenever the host may disappear. Returns an unsubscribe function."""


class HostLifecycle(LifecycleSource):
    """In-process source driven by the host (HTTP signals, app shutdown)."""

    def __init__(self) -> None:
        self._callbacks: list[LifecycleCallback] = []

    def on_becoming_unreachable(self, callback: LifecycleCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def emit(self, signal: LifecycleSignal) -> None:
        logger.debug("Lifecycle signal %s → %d subscriber(s)", signal.value, len(self._callbacks))
        # Copy: a callback may unsubscribe itself
        for callback in list(self._callbacks):
            try:
                callback(signal)
            except Exception:
                logger.exception("Lifecycle callback failed for signal %s", signal.value)
