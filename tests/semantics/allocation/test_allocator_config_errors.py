"""
Semantic test: malformed tier layouts fail with ConfigError, empty tiers are skipped.

Invariant:
Every assignment must reference an existing tier and a validator belongs to
at most one tier. A tier without members does not crash the allocator: it is
skipped and its share stays unallocated.
"""

from __future__ import annotations

import logging

import pytest

from stake_rebalancer.core.allocation.allocator import (
    EqualWeightAllocator,
    TieredAllocator,
    build_allocator,
)
from stake_rebalancer.core.domain.errors import ConfigError
from stake_rebalancer.core.domain.types import Tier, ValidatorAssignment


def test_tier_without_members_is_skipped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    tiers = [Tier(name="Tier 1", weight=4), Tier(name="Tier 2", weight=3), Tier(name="Tier 3", weight=1)]
    assignments = [
        ValidatorAssignment(validator_key="v1", tier="Tier 1"),
        ValidatorAssignment(validator_key="v3", tier="Tier 3"),
    ]

    with caplog.at_level(logging.WARNING):
        targets = TieredAllocator().allocate(tiers, assignments, 800)

    assert targets == {"v1": 400, "v3": 100}
    assert "Tier has no assigned validators" in caplog.text


def test_unknown_tier_reference_raises_config_error() -> None:
    tiers = [Tier(name="Tier 1", weight=1)]
    assignments = [ValidatorAssignment(validator_key="v1", tier="Tier 9")]

    with pytest.raises(ConfigError, match="unknown tier"):
        TieredAllocator().allocate(tiers, assignments, 100)


def test_validator_in_two_tiers_raises_config_error() -> None:
    tiers = [Tier(name="Tier 1", weight=1), Tier(name="Tier 2", weight=1)]
    assignments = [
        ValidatorAssignment(validator_key="v1", tier="Tier 1"),
        ValidatorAssignment(validator_key="v1", tier="Tier 2"),
    ]

    with pytest.raises(ConfigError, match="more than one tier"):
        TieredAllocator().allocate(tiers, assignments, 100)


def test_duplicate_tier_names_and_negative_total_raise_config_error() -> None:
    assignments = [ValidatorAssignment(validator_key="v1", tier="Tier 1")]

    with pytest.raises(ConfigError, match="duplicate tier"):
        TieredAllocator().allocate(
            [Tier(name="Tier 1", weight=1), Tier(name="Tier 1", weight=2)],
            assignments,
            100,
        )

    with pytest.raises(ConfigError, match="non-negative"):
        TieredAllocator().allocate([Tier(name="Tier 1", weight=1)], assignments, -1)

    with pytest.raises(ConfigError, match="at least one tier"):
        TieredAllocator().allocate([], [], 100)


def test_equal_allocator_ignores_weights() -> None:
    tiers = [Tier(name="Tier 1", weight=4), Tier(name="Tier 2", weight=1)]
    assignments = [
        ValidatorAssignment(validator_key="v2", tier="Tier 2"),
        ValidatorAssignment(validator_key="v1", tier="Tier 1"),
        ValidatorAssignment(validator_key="v3", tier="Tier 1"),
    ]

    targets = EqualWeightAllocator().allocate(tiers, assignments, 1_000)

    assert targets == {"v1": 333, "v3": 333, "v2": 333}
    assert list(targets) == ["v1", "v3", "v2"]


def test_build_allocator_selects_by_name() -> None:
    assert isinstance(build_allocator("tiered"), TieredAllocator)
    assert isinstance(build_allocator("equal"), EqualWeightAllocator)

    with pytest.raises(ConfigError, match="unknown allocator"):
        build_allocator("proportional-to-apy")
