from __future__ import annotations

from typing import TYPE_CHECKING

from stake_rebalancer.core.events.event_bus import EventBus

if TYPE_CHECKING:
    from stake_rebalancer.core.events.events import RebalanceEvent


class NullEventBus(EventBus):
    """Bus without sinks; counts emitted events and drops them (tests, offline planning)."""

    def __init__(self) -> None:
        super().__init__(sinks=())
        self.dropped = 0

    def register(self, sink: object) -> None:
        raise TypeError("NullEventBus does not accept sinks")

    def emit(self, event: RebalanceEvent) -> None:
        self.dropped += 1
