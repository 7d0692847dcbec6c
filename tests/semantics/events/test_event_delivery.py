"""
Semantic test: event delivery never interrupts a rebalance cycle.

Invariant:
Every sink sees every event in emission order. A sink that raises is logged
and skipped while the remaining sinks still receive the event.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from stake_rebalancer.core.events.event_bus import EventBus
from stake_rebalancer.core.events.events import AdjustmentAppliedEvent, CycleCompletedEvent
from stake_rebalancer.core.events.sinks.file_recorder import FileRecorderSink
from stake_rebalancer.core.events.sinks.null_event_bus import NullEventBus
from stake_rebalancer.core.events.sinks.sink_logging import LoggingEventSink


class _BrokenSink:
    def on_event(self, event: object) -> None:
        raise OSError("disk full")


class _ListSink:
    def __init__(self) -> None:
        self.events: list[object] = []

    def on_event(self, event: object) -> None:
        self.events.append(event)


def _applied(success: bool) -> AdjustmentAppliedEvent:
    return AdjustmentAppliedEvent(
        epoch=7,
        validator_key="stach",
        direction="increase",
        requested=400,
        amount=400,
        success=success,
    )


def test_failing_sink_does_not_block_other_sinks() -> None:
    good = _ListSink()
    bus = EventBus(sinks=[_BrokenSink(), good])

    bus.emit(_applied(True))
    bus.emit(_applied(False))

    assert [e.success for e in good.events] == [True, False]
    assert bus.sink_failures == 2


def test_file_recorder_writes_tagged_json_lines(tmp_path: Path) -> None:
    path = tmp_path / "events" / "cycle.jsonl"
    bus = EventBus(sinks=[FileRecorderSink(path)])

    bus.emit(_applied(True))
    bus.emit(CycleCompletedEvent(epoch=7, status="completed", applied=1, failed=0, deferred=0, pending_total=0))
    bus.close()
    bus.close()

    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [r["event_type"] for r in records] == ["AdjustmentAppliedEvent", "CycleCompletedEvent"]
    assert records[0]["validator_key"] == "stach"


def test_emit_after_close_is_dropped() -> None:
    sink = _ListSink()
    bus = EventBus(sinks=[sink])
    bus.close()

    bus.emit(_applied(True))

    assert sink.events == []


def test_logging_sink_warns_on_failed_adjustment(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingEventSink(logging.getLogger("events"))

    with caplog.at_level(logging.INFO, logger="events"):
        sink.on_event(_applied(True))
        sink.on_event(_applied(False))

    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]
    assert caplog.records[1].event["success"] is False


def test_null_bus_drops_everything() -> None:
    bus = NullEventBus()

    bus.emit(_applied(True))

    assert bus.dropped == 1
    with pytest.raises(TypeError):
        bus.register(_ListSink())
