"""
Logging event sink.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stake_rebalancer.core.events.events import AdjustmentAppliedEvent, CycleCompletedEvent, event_payload

if TYPE_CHECKING:
    from stake_rebalancer.core.events.events import RebalanceEvent


class LoggingEventSink:
    """Logs rebalance events; failed adjustments and cycles with failures log as warnings."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @staticmethod
    def _level(event: RebalanceEvent) -> int:
        if isinstance(event, AdjustmentAppliedEvent) and not event.success:
            return logging.WARNING
        if isinstance(event, CycleCompletedEvent) and event.failed:
            return logging.WARNING
        return logging.INFO

    def on_event(self, event: RebalanceEvent) -> None:
        payload = event_payload(event)
        self._logger.log(self._level(event), "rebalance_event %s", payload["event_type"], extra={"event": payload})
