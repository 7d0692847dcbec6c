"""Target stake allocation strategies.

An allocator turns the tier configuration and the pool's total stake into a
per-validator target. The mapping it returns is ordered: tiers in configured
order, validators in assignment order within each tier. The planner emits
actions in exactly this order.

Rounding policy: every division floors, and the leftover lamports are NOT
redistributed, so ``sum(targets) <= total_stake`` always holds.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from stake_rebalancer.core.domain.errors import ConfigError

if TYPE_CHECKING:
    from stake_rebalancer.core.domain.types import Tier, ValidatorAssignment

LOGGER = logging.getLogger(__name__)


def find_layout_problem(
    tiers: Sequence[Tier],
    assignments: Sequence[ValidatorAssignment],
) -> str | None:
    """Return a description of the first tier/assignment inconsistency, or None."""
    if not tiers:
        return "at least one tier is required"

    tier_names: set[str] = set()
    for tier in tiers:
        if tier.name in tier_names:
            return f"duplicate tier name: {tier.name}"
        if tier.weight <= 0:
            return f"tier {tier.name} must have a positive weight"
        tier_names.add(tier.name)

    assigned: set[str] = set()
    for a in assignments:
        if a.tier not in tier_names:
            return f"validator {a.validator_key} references unknown tier {a.tier}"
        if a.validator_key in assigned:
            return f"validator {a.validator_key} is assigned to more than one tier"
        assigned.add(a.validator_key)

    return None


def tier_members(
    tiers: Sequence[Tier],
    assignments: Sequence[ValidatorAssignment],
) -> dict[str, list[str]]:
    """Return tier name -> validator keys, tiers and members in configured order."""
    members: dict[str, list[str]] = {t.name: [] for t in tiers}
    for a in assignments:
        members[a.tier].append(a.validator_key)
    return members


class Allocator(ABC):
    """Strategy interface: compute per-validator target stake."""

    name: str = ""

    @abstractmethod
    def allocate(
        self,
        tiers: Sequence[Tier],
        assignments: Sequence[ValidatorAssignment],
        total_stake: int,
    ) -> dict[str, int]:
        """Return an ordered mapping validator_key -> target stake (lamports)."""

    @staticmethod
    def _validate(
        tiers: Sequence[Tier],
        assignments: Sequence[ValidatorAssignment],
        total_stake: int,
    ) -> None:
        if total_stake < 0:
            raise ConfigError(f"total stake must be non-negative, got {total_stake}")
        problem = find_layout_problem(tiers, assignments)
        if problem is not None:
            raise ConfigError(problem)


class TieredAllocator(Allocator):
    """Weighted tiers, equal split inside each tier.

    tier_allocation = floor(weight * total_stake / sum_weights)
    per_validator   = floor(tier_allocation / member_count)
    """

    name = "tiered"

    def allocate(
        self,
        tiers: Sequence[Tier],
        assignments: Sequence[ValidatorAssignment],
        total_stake: int,
    ) -> dict[str, int]:
        self._validate(tiers, assignments, total_stake)

        sum_weights = sum(t.weight for t in tiers)

        members = tier_members(tiers, assignments)

        targets: dict[str, int] = {}
        for tier in tiers:
            # Integer arithmetic: exact floor even for very large balances.
            tier_allocation = tier.weight * total_stake // sum_weights
            keys = members[tier.name]

            if not keys:
                LOGGER.warning(
                    "Tier has no assigned validators; allocation left unassigned",
                    extra={"tier": tier.name, "tier_allocation": tier_allocation},
                )
                continue

            per_validator = tier_allocation // len(keys)
            for key in keys:
                targets[key] = per_validator

        return targets


class EqualWeightAllocator(Allocator):
    """Ignore tier weights and split total stake evenly over every assigned validator."""

    name = "equal"

    def allocate(
        self,
        tiers: Sequence[Tier],
        assignments: Sequence[ValidatorAssignment],
        total_stake: int,
    ) -> dict[str, int]:
        self._validate(tiers, assignments, total_stake)

        if not assignments:
            LOGGER.warning("No validators assigned; nothing to allocate")
            return {}

        # Keep the tiered ordering so both strategies emit actions alike.
        ordered = [a.validator_key for t in tiers for a in assignments if a.tier == t.name]
        per_validator = total_stake // len(ordered)
        return {key: per_validator for key in ordered}


_ALLOCATORS: dict[str, type[Allocator]] = {
    TieredAllocator.name: TieredAllocator,
    EqualWeightAllocator.name: EqualWeightAllocator,
}


def build_allocator(name: str) -> Allocator:
    """Instantiate the allocator registered under ``name``."""
    try:
        return _ALLOCATORS[name]()
    except KeyError:
        raise ConfigError(
            f"unknown allocator {name!r}; expected one of {sorted(_ALLOCATORS)}"
        ) from None
