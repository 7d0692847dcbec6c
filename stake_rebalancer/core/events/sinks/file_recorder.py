"""
Append-only file recorder sink.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from stake_rebalancer.core.events.events import event_payload

if TYPE_CHECKING:
    from stake_rebalancer.core.events.events import RebalanceEvent


class FileRecorderSink:
    """Writes each event as a JSON line to a file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self._path.open("a", encoding="utf-8")
        self._closed = False

    def on_event(self, event: RebalanceEvent) -> None:
        if self._closed:
            raise ValueError(f"event recorder {self._path} is closed")
        self._fh.write(json.dumps(event_payload(event), sort_keys=True) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._fh.flush()
        self._fh.close()
        self._closed = True
