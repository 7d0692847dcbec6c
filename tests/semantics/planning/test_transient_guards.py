"""
Semantic test: in-flight stake transitions block compounding adjustments.

Invariant:
- Increase with transient stake activating: no action this cycle, the full
  delta is carried into the pending-adjustment ledger.
- Decrease with transient stake activating or deactivating: no action.
- Other states (inactive, unknown; deactivating for increases) proceed.
"""

from __future__ import annotations

import pytest

from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
from stake_rebalancer.core.domain.skip_reasons import SkipReason
from stake_rebalancer.core.domain.types import PoolSnapshot, ValidatorState
from stake_rebalancer.core.events.sinks.null_event_bus import NullEventBus
from stake_rebalancer.core.planning.rebalance_planner import RebalancePlanner, ReserveConfig

RESERVE_CFG = ReserveConfig(minimum_reserve=5_000_000_000)


def _snapshot(activation_state: str) -> PoolSnapshot:
    return PoolSnapshot(
        total_stake=1_000_000_000_000,
        reserve_stake=100_000_000_000,
        validators=(
            ValidatorState(
                key="validator-1",
                active_stake=300_000_000,
                transient_stake=100_000_000,
                activation_state=activation_state,
            ),
        ),
    )


def test_activating_increase_is_deferred_into_ledger() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot("activating"),
        allocation={"validator-1": 600_000_000},  # delta = +200_000_000
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert plan.actions == []
    assert plan.skipped[0].reason == SkipReason.ACTIVATING_TRANSIENT
    assert plan.ledger.get("validator-1") == 200_000_000
    assert plan.reserve_committed == 0


@pytest.mark.parametrize(
    ("activation_state", "reason"),
    [
        ("activating", SkipReason.ACTIVATING_TRANSIENT),
        ("deactivating", SkipReason.DEACTIVATING_TRANSIENT),
    ],
)
def test_decrease_is_suppressed_during_transition(activation_state: str, reason: str) -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot(activation_state),
        allocation={"validator-1": 100_000_000},  # delta = -300_000_000
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert plan.actions == []
    assert plan.skipped[0].reason == reason
    # Decreases are never carried in the ledger.
    assert len(plan.ledger) == 0


@pytest.mark.parametrize("activation_state", ["inactive", "unknown", "deactivating"])
def test_increase_proceeds_when_not_activating(activation_state: str) -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot(activation_state),
        allocation={"validator-1": 600_000_000},
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert len(plan.actions) == 1
    assert plan.actions[0].direction == "increase"
    assert plan.actions[0].amount == 200_000_000


@pytest.mark.parametrize("activation_state", ["inactive", "unknown"])
def test_decrease_proceeds_when_settled(activation_state: str) -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot(activation_state),
        allocation={"validator-1": 100_000_000},
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert len(plan.actions) == 1
    assert plan.actions[0].direction == "decrease"
    assert plan.actions[0].amount == 300_000_000
