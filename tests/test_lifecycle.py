"""Tests for the host lifecycle signal source."""

from smriti.schemas.draft import LifecycleSignal
from smriti.services.lifecycle import HostLifecycle


def test_emit_reaches_all_subscribers():
    source = HostLifecycle()
    seen: list[tuple[str, LifecycleSignal]] = []
    source.on_becoming_unreachable(lambda s: seen.append(("a", s)))
    source.on_becoming_unreachable(lambda s: seen.append(("b", s)))

    source.emit(LifecycleSignal.HIDDEN)
    source.emit(LifecycleSignal.DESTROYED)

    assert seen == [
        ("a", LifecycleSignal.HIDDEN),
        ("b", LifecycleSignal.HIDDEN),
        ("a", LifecycleSignal.DESTROYED),
        ("b", LifecycleSignal.DESTROYED),
    ]


def test_unsubscribe_stops_delivery():
    source = HostLifecycle()
    seen: list[LifecycleSignal] = []
    unsubscribe = source.on_becoming_unreachable(seen.append)
    unsubscribe()
    unsubscribe()  # idempotent

    source.emit(LifecycleSignal.HIDDEN)
    assert seen == []
    assert source.subscriber_count == 0


def test_failing_callback_does_not_block_others():
    source = HostLifecycle()
    seen: list[LifecycleSignal] = []

    def boom(signal):
        raise RuntimeError("listener crashed")

    source.on_becoming_unreachable(boom)
    source.on_becoming_unreachable(seen.append)
    source.emit(LifecycleSignal.DESTROYED)
    assert seen == [LifecycleSignal.DESTROYED]


def test_callback_may_unsubscribe_itself():
    source = HostLifecycle()
    calls: list[LifecycleSignal] = []
    holder: dict = {}

    def once(signal):
        calls.append(signal)
        holder["unsub"]()

    holder["unsub"] = source.on_becoming_unreachable(once)
    source.emit(LifecycleSignal.HIDDEN)
    source.emit(LifecycleSignal.HIDDEN)
    assert calls == [LifecycleSignal.HIDDEN]
