"""
Semantic test: pending-adjustment ledger overwrite vs. accumulate policy.

Invariant:
- overwrite (default): a new record for a validator replaces the old amount.
- accumulate: a new record adds to the old amount.
- drain() removes the entry and returns it (0 when absent).
- all() preserves first-record order.
The policy is visible across consecutive cycles in which the same increase
keeps being deferred.
"""

from __future__ import annotations

import pytest

from stake_rebalancer.core.domain.errors import ConfigError
from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
from stake_rebalancer.core.domain.types import PendingAdjustment, PoolSnapshot, ValidatorState
from stake_rebalancer.core.events.sinks.null_event_bus import NullEventBus
from stake_rebalancer.core.planning.rebalance_planner import RebalancePlanner, ReserveConfig


def test_overwrite_replaces_previous_amount() -> None:
    ledger = PendingAdjustmentLedger()
    ledger.record("v1", 300)
    ledger.record("v2", 50)
    ledger.record("v1", 100)

    assert ledger.policy == "overwrite"
    assert ledger.all() == [
        PendingAdjustment(validator_key="v1", amount=100),
        PendingAdjustment(validator_key="v2", amount=50),
    ]


def test_accumulate_sums_amounts() -> None:
    ledger = PendingAdjustmentLedger(policy="accumulate")
    ledger.record("v1", 300)
    ledger.record("v1", 100)

    assert ledger.get("v1") == 400
    assert ledger.total() == 400


def test_drain_returns_and_clears() -> None:
    ledger = PendingAdjustmentLedger()
    ledger.record("v1", 300)

    assert ledger.drain("v1") == 300
    assert ledger.drain("v1") == 0
    assert ledger.drain("never-recorded") == 0
    assert len(ledger) == 0


def test_non_positive_amounts_are_ignored_and_copy_is_independent() -> None:
    ledger = PendingAdjustmentLedger()
    ledger.record("v1", 0)
    ledger.record("v2", -5)
    assert ledger.all() == []

    ledger.record("v1", 10)
    clone = ledger.copy()
    clone.record("v1", 20)
    assert ledger.get("v1") == 10
    assert clone.get("v1") == 20


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ConfigError, match="merge"):
        PendingAdjustmentLedger(policy="merge")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("policy", "expected_after_two_cycles"),
    [
        ("overwrite", 200_000_000),
        ("accumulate", 400_000_000),
    ],
)
def test_repeated_deferral_across_cycles(policy: str, expected_after_two_cycles: int) -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())
    snapshot = PoolSnapshot(
        total_stake=1_000_000_000_000,
        reserve_stake=100_000_000_000,
        validators=(
            ValidatorState(
                key="v1",
                active_stake=300_000_000,
                transient_stake=100_000_000,
                activation_state="activating",
            ),
        ),
    )
    reserve_cfg = ReserveConfig(minimum_reserve=5_000_000_000)

    ledger = PendingAdjustmentLedger(policy=policy)  # type: ignore[arg-type]
    for _ in range(2):
        plan = planner.plan(snapshot, {"v1": 600_000_000}, ledger, 100_000_000, reserve_cfg)
        ledger = plan.ledger

    assert ledger.get("v1") == expected_after_two_cycles


def test_emitted_action_supersedes_pending_entry() -> None:
    planner = RebalancePlanner(event_bus=NullEventBus())
    snapshot = PoolSnapshot(
        total_stake=1_000_000_000_000,
        reserve_stake=100_000_000_000,
        validators=(ValidatorState(key="v1", active_stake=400_000_000, activation_state="inactive"),),
    )
    ledger = PendingAdjustmentLedger(policy="accumulate")
    ledger.record("v1", 200_000_000)

    plan = planner.plan(snapshot, {"v1": 600_000_000}, ledger, 100_000_000, ReserveConfig(minimum_reserve=0))

    assert plan.actions[0].amount == 200_000_000
    assert "v1" not in plan.ledger


@pytest.mark.parametrize("policy", ["overwrite", "accumulate"])
def test_add_sums_regardless_of_policy(policy: str) -> None:
    ledger = PendingAdjustmentLedger(policy=policy)  # type: ignore[arg-type]
    ledger.record("v1", 400_000_000)

    ledger.add("v1", 600_000_000)
    ledger.add("v1", 0)
    ledger.add("v2", 50)

    assert ledger.get("v1") == 1_000_000_000
    assert [e.validator_key for e in ledger.all()] == ["v1", "v2"]
