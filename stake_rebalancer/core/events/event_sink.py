"""
Event sink interface.

Sinks consume rebalance events emitted by the planner and the cycle driver.
A sink may also expose ``close()``; the bus calls it once at shutdown.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stake_rebalancer.core.events.events import RebalanceEvent


class EventSink(Protocol):
    def on_event(self, event: RebalanceEvent) -> None:
        """Consume one rebalance event."""
