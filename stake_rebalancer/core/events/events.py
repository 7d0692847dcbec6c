"""
Rebalance event models.

These events represent immutable facts observed during a rebalance cycle.
They are consumed by loggers, recorders, and monitoring pipelines.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Union


@dataclass(slots=True)
class AllocationComputedEvent:
    epoch: int | None
    allocator: str
    total_stake: int

    allocated: int
    unallocated: int
    validators: int


@dataclass(slots=True)
class RebalancePlanEvent:
    epoch: int | None

    increases: int
    decreases: int
    skipped: int

    reserve_committed: int
    pending_total: int

    skip_reasons: dict[str, int]


@dataclass(slots=True)
class AdjustmentAppliedEvent:
    epoch: int | None
    validator_key: str
    direction: str

    requested: int
    amount: int
    success: bool


@dataclass(slots=True)
class CycleCompletedEvent:
    epoch: int | None
    status: str

    applied: int
    failed: int
    deferred: int

    pending_total: int

    skip_reasons: dict[str, int] = field(default_factory=dict)


RebalanceEvent = Union[
    AllocationComputedEvent,
    RebalancePlanEvent,
    AdjustmentAppliedEvent,
    CycleCompletedEvent,
]


def event_payload(event: RebalanceEvent) -> dict[str, Any]:
    """Flat JSON-compatible view of an event, tagged with its type."""
    payload = asdict(event)
    payload["event_type"] = type(event).__name__
    return payload
