"""
Synchronous rebalance event bus.

Events are delivered on the caller's thread, in emission order, to every
sink in registration order. A failing sink is logged and skipped; event
delivery never interrupts a rebalance cycle.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from stake_rebalancer.core.events.event_sink import EventSink
    from stake_rebalancer.core.events.events import RebalanceEvent

LOGGER = logging.getLogger(__name__)


class EventBus:
    """Fans rebalance events out to registered sinks."""

    def __init__(self, sinks: Iterable[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else []
        self._closed = False
        self.sink_failures = 0

    @property
    def sinks(self) -> tuple[EventSink, ...]:
        return tuple(self._sinks)

    def register(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: RebalanceEvent) -> None:
        if self._closed:
            LOGGER.warning(
                "Event emitted after bus was closed; dropped",
                extra={"event_type": type(event).__name__},
            )
            return

        for sink in self._sinks:
            try:
                sink.on_event(event)
            except Exception:  # pylint: disable=broad-exception-caught
                self.sink_failures += 1
                LOGGER.exception(
                    "Event sink failed",
                    extra={"sink": type(sink).__name__, "event_type": type(event).__name__},
                )

    def close(self) -> None:
        """Close every sink exposing close(); safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for sink in self._sinks:
            close_fn = getattr(sink, "close", None)
            if not callable(close_fn):
                continue
            try:
                close_fn()
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception("Event sink close failed", extra={"sink": type(sink).__name__})
