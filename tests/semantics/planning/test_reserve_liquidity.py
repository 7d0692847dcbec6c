"""
Semantic test: increases are clamped to the reserve above its floor.

Invariant:
available = reserve_stake - minimum_reserve. With available <= 0 no increase
is emitted (liquidity shortfall, not an error). Otherwise the increase is
min(delta, available). A clamped amount below the minimum adjustment
threshold is suppressed; the full delta then waits in the ledger.
"""

from __future__ import annotations

import logging

import pytest

from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
from stake_rebalancer.core.domain.skip_reasons import SkipReason
from stake_rebalancer.core.domain.types import AdjustmentAction, PoolSnapshot, ValidatorState
from stake_rebalancer.core.events.sinks.null_event_bus import NullEventBus
from stake_rebalancer.core.planning.rebalance_planner import RebalancePlanner, ReserveConfig

RESERVE_CFG = ReserveConfig(minimum_reserve=5_000_000_000)


def _snapshot(reserve_stake: int) -> PoolSnapshot:
    return PoolSnapshot(
        total_stake=10_000_000_000,
        reserve_stake=reserve_stake,
        validators=(
            ValidatorState(key="validator-1", active_stake=0, transient_stake=0, activation_state="inactive"),
        ),
    )


def test_clamped_amount_below_threshold_is_suppressed() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot(reserve_stake=5_000_000_100),
        allocation={"validator-1": 200_000_000},
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert plan.actions == []
    assert plan.skipped[0].reason == SkipReason.LIQUIDITY_SHORTFALL
    assert plan.ledger.get("validator-1") == 200_000_000


def test_clamped_amount_at_or_above_threshold_is_emitted() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    plan = planner.plan(
        snapshot=_snapshot(reserve_stake=5_000_000_100),
        allocation={"validator-1": 200_000_000},
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100,
        reserve_cfg=RESERVE_CFG,
    )

    assert plan.actions == [AdjustmentAction(validator_key="validator-1", direction="increase", amount=100)]
    assert plan.reserve_committed == 100
    # The unexecuted remainder is carried forward.
    assert plan.ledger.get("validator-1") == 200_000_000 - 100


@pytest.mark.parametrize("reserve_stake", [5_000_000_000, 4_999_999_999, 0])
def test_no_liquidity_above_floor_emits_no_increase(
    reserve_stake: int,
    caplog: pytest.LogCaptureFixture,
) -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())

    with caplog.at_level(logging.WARNING):
        plan = planner.plan(
            snapshot=_snapshot(reserve_stake=reserve_stake),
            allocation={"validator-1": 2_000_000_000},
            ledger=PendingAdjustmentLedger(),
            min_adjustment_threshold=100_000_000,
            reserve_cfg=RESERVE_CFG,
        )

    assert plan.actions == []
    assert plan.skipped[0].reason == SkipReason.LIQUIDITY_SHORTFALL
    assert plan.ledger.get("validator-1") == 2_000_000_000
    assert "Insufficient reserve" in caplog.text


def test_decreases_ignore_reserve_liquidity() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())
    snapshot = PoolSnapshot(
        total_stake=10_000_000_000,
        reserve_stake=0,
        validators=(
            ValidatorState(key="validator-1", active_stake=3_000_000_000, activation_state="inactive"),
        ),
    )

    plan = planner.plan(
        snapshot=snapshot,
        allocation={"validator-1": 1_000_000_000},
        ledger=PendingAdjustmentLedger(),
        min_adjustment_threshold=100_000_000,
        reserve_cfg=RESERVE_CFG,
    )

    assert plan.actions == [
        AdjustmentAction(validator_key="validator-1", direction="decrease", amount=2_000_000_000)
    ]


def test_live_reserve_recheck_clamps_and_defers() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())
    action = AdjustmentAction(validator_key="validator-1", direction="increase", amount=1_000_000_000)

    ledger = PendingAdjustmentLedger()
    clamped = planner.recheck_increase(action, 5_400_000_000, ledger, 100_000_000, RESERVE_CFG)
    assert clamped == AdjustmentAction(validator_key="validator-1", direction="increase", amount=400_000_000)
    assert ledger.get("validator-1") == 600_000_000

    ledger = PendingAdjustmentLedger()
    deferred = planner.recheck_increase(action, 5_000_000_050, ledger, 100_000_000, RESERVE_CFG)
    assert deferred is None
    assert ledger.get("validator-1") == 1_000_000_000

    ledger = PendingAdjustmentLedger()
    unchanged = planner.recheck_increase(action, 50_000_000_000, ledger, 100_000_000, RESERVE_CFG)
    assert unchanged == action
    assert len(ledger) == 0
