"""Rebalance planner: diff target vs. current stake and decide adjustments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

from stake_rebalancer.core.domain.errors import ConfigError, ValidationError
from stake_rebalancer.core.domain.skip_reasons import SkipReason
from stake_rebalancer.core.domain.types import AdjustmentAction
from stake_rebalancer.core.events.events import RebalancePlanEvent

if TYPE_CHECKING:
    from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
    from stake_rebalancer.core.domain.types import PoolSnapshot, ValidatorState
    from stake_rebalancer.core.events.event_bus import EventBus

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan models (internal, not part of JSON schema)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReserveConfig:
    """Reserve liquidity constraints.

    minimum_reserve: lamports that must remain in the reserve after any increase.
    """

    minimum_reserve: int

    def __post_init__(self) -> None:
        if self.minimum_reserve < 0:
            raise ConfigError(f"minimum_reserve must be non-negative, got {self.minimum_reserve}")

    def available(self, reserve_stake: int) -> int:
        """Lamports that may leave a reserve holding ``reserve_stake``."""
        return reserve_stake - self.minimum_reserve


@dataclass(slots=True)
class SkippedValidator:
    validator_key: str
    reason: str
    delta: int


@dataclass(slots=True)
class RebalancePlan:
    """Result of one planning pass.

    - actions: adjustments to apply, in allocation order
    - skipped: validators that produced no action, with reasons
    - ledger: updated copy of the pending-adjustment ledger
    - reserve_committed: lamports the planned increases take out of the reserve
    """

    actions: list[AdjustmentAction]
    skipped: list[SkippedValidator]
    ledger: PendingAdjustmentLedger
    reserve_committed: int = 0
    skip_counts: dict[str, int] = field(default_factory=dict)

    @property
    def increases(self) -> list[AdjustmentAction]:
        return [a for a in self.actions if a.is_increase()]

    @property
    def decreases(self) -> list[AdjustmentAction]:
        return [a for a in self.actions if a.is_decrease()]

    def skipped_for(self, reason: str) -> list[SkippedValidator]:
        return [s for s in self.skipped if s.reason == reason]


class RebalancePlanner:
    """Decide increase/decrease actions for one rebalance cycle.

    This layer is allowed to:
    - skip validators for policy reasons (threshold, liquidity, in-flight transitions)
    - clamp increases to the liquidity left above the reserve floor
    - carry unexecuted increase amounts in the pending-adjustment ledger

    It must NOT perform I/O or submit adjustments itself.
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus

    # ---------------------------------------------------------------------
    # Planning
    # ---------------------------------------------------------------------

    # pylint: disable=too-many-locals,too-many-branches,too-many-arguments
    def plan(
        self,
        snapshot: PoolSnapshot,
        allocation: Mapping[str, int],
        ledger: PendingAdjustmentLedger,
        min_adjustment_threshold: int,
        reserve_cfg: ReserveConfig,
        *,
        epoch: int | None = None,
    ) -> RebalancePlan:
        """Plan adjustments for every validator in ``allocation``.

        Ledger handling per validator:
        - action emitted / in balance / decrease path: existing entry cleared
          (superseded by the fresh target)
        - increase suppressed (activating, liquidity): delta recorded
        - increase clamped by liquidity: remainder recorded
        - missing from snapshot: entry left untouched
        """
        self._validate_inputs(snapshot, allocation, min_adjustment_threshold)

        ledger = ledger.copy()
        states = snapshot.by_key()

        actions: list[AdjustmentAction] = []
        skipped: list[SkippedValidator] = []
        skip_counts: dict[str, int] = {}
        committed = 0

        def _skip(key: str, reason: str, delta: int) -> None:
            skipped.append(SkippedValidator(key, reason, delta))
            skip_counts[reason] = skip_counts.get(reason, 0) + 1

        for key, target in allocation.items():
            state = states.get(key)
            if state is None:
                # The validator may have left the pool between listing and fetch.
                LOGGER.warning(
                    "Validator not found in pool snapshot; skipping",
                    extra={"validator": key, "target_stake": target},
                )
                _skip(key, SkipReason.MISSING_VALIDATOR, 0)
                continue

            delta = target - state.current_stake

            if delta == 0:
                ledger.drain(key)
                _skip(key, SkipReason.IN_BALANCE, 0)
                continue

            if abs(delta) < min_adjustment_threshold:
                LOGGER.debug(
                    "Difference below minimum adjustment; skipping",
                    extra={"validator": key, "delta": delta, "threshold": min_adjustment_threshold},
                )
                ledger.drain(key)
                _skip(key, SkipReason.BELOW_THRESHOLD, delta)
                continue

            if delta < 0:
                ledger.drain(key)
                reason = self._decrease_blocker(state)
                if reason is not None:
                    LOGGER.info(
                        "Stake decrease deferred by in-flight transition",
                        extra={"validator": key, "delta": delta, "activation_state": state.activation_state},
                    )
                    _skip(key, reason, delta)
                    continue
                actions.append(AdjustmentAction(validator_key=key, direction="decrease", amount=-delta))
                continue

            # --- increase path ---
            if state.activation_state == "activating":
                LOGGER.info(
                    "Stake increase deferred: transient stake is activating",
                    extra={"validator": key, "delta": delta},
                )
                ledger.record(key, delta)
                _skip(key, SkipReason.ACTIVATING_TRANSIENT, delta)
                continue

            # Reserve is re-checked per validator, net of what this plan already takes.
            available = reserve_cfg.available(snapshot.reserve_stake - committed)
            if available <= 0:
                LOGGER.warning(
                    "Insufficient reserve above minimum; stake increase deferred",
                    extra={
                        "validator": key,
                        "delta": delta,
                        "reserve_stake": snapshot.reserve_stake,
                        "reserve_committed": committed,
                        "minimum_reserve": reserve_cfg.minimum_reserve,
                    },
                )
                ledger.record(key, delta)
                _skip(key, SkipReason.LIQUIDITY_SHORTFALL, delta)
                continue

            amount = min(delta, available)
            if amount < min_adjustment_threshold:
                LOGGER.warning(
                    "Reserve-clamped increase below minimum adjustment; deferred",
                    extra={"validator": key, "delta": delta, "clamped": amount},
                )
                ledger.record(key, delta)
                _skip(key, SkipReason.LIQUIDITY_SHORTFALL, delta)
                continue

            ledger.drain(key)
            if amount < delta:
                LOGGER.info(
                    "Stake increase clamped to available reserve",
                    extra={"validator": key, "requested": delta, "clamped": amount},
                )
                ledger.record(key, delta - amount)

            committed += amount
            actions.append(AdjustmentAction(validator_key=key, direction="increase", amount=amount))

        plan = RebalancePlan(
            actions=actions,
            skipped=skipped,
            ledger=ledger,
            reserve_committed=committed,
            skip_counts=skip_counts,
        )

        self._event_bus.emit(
            RebalancePlanEvent(
                epoch=epoch,
                increases=len(plan.increases),
                decreases=len(plan.decreases),
                skipped=len(skipped),
                reserve_committed=committed,
                pending_total=ledger.total(),
                skip_reasons=skip_counts,
            )
        )

        return plan

    # ---------------------------------------------------------------------
    # Execution-time ledger updates
    # ---------------------------------------------------------------------

    def recheck_increase(
        self,
        action: AdjustmentAction,
        live_reserve_stake: int,
        ledger: PendingAdjustmentLedger,
        min_adjustment_threshold: int,
        reserve_cfg: ReserveConfig,
    ) -> AdjustmentAction | None:
        """Re-apply the liquidity guard against a freshly read reserve balance.

        Returns the (possibly clamped) action to execute, or None if the
        increase must wait. Unexecuted lamports go into ``ledger``.
        """
        if not action.is_increase():
            return action

        if live_reserve_stake < 0:
            raise ValidationError(f"reserve balance must be non-negative, got {live_reserve_stake}")

        available = reserve_cfg.available(live_reserve_stake)
        amount = min(action.amount, available)

        if available <= 0 or amount < min_adjustment_threshold:
            LOGGER.warning(
                "Live reserve cannot cover stake increase; deferred",
                extra={
                    "validator": action.validator_key,
                    "requested": action.amount,
                    "live_reserve_stake": live_reserve_stake,
                    "minimum_reserve": reserve_cfg.minimum_reserve,
                },
            )
            ledger.add(action.validator_key, action.amount)
            return None

        if amount < action.amount:
            ledger.add(action.validator_key, action.amount - amount)
            return AdjustmentAction(validator_key=action.validator_key, direction="increase", amount=amount)

        return action

    def defer_increase(
        self,
        ledger: PendingAdjustmentLedger,
        action: AdjustmentAction,
    ) -> None:
        """Carry an unexecuted increase into the ledger verbatim.

        Decreases are never carried: they are re-derived from live state.
        """
        if action.is_increase():
            ledger.add(action.validator_key, action.amount)

    def record_execution_failure(
        self,
        ledger: PendingAdjustmentLedger,
        action: AdjustmentAction,
    ) -> None:
        """The executor reported failure: the full amount counts as unexecuted."""
        self.defer_increase(ledger, action)

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    @staticmethod
    def _decrease_blocker(state: ValidatorState) -> str | None:
        if state.activation_state == "activating":
            return SkipReason.ACTIVATING_TRANSIENT
        if state.activation_state == "deactivating":
            return SkipReason.DEACTIVATING_TRANSIENT
        return None

    @staticmethod
    def _validate_inputs(
        snapshot: PoolSnapshot,
        allocation: Mapping[str, int],
        min_adjustment_threshold: int,
    ) -> None:
        """Reject malformed input.

        Snapshots are validated on construction, but may still be built via
        model_construct() by readers, so values are checked again here.
        """
        if min_adjustment_threshold < 0:
            raise ValidationError(
                f"min_adjustment_threshold must be non-negative, got {min_adjustment_threshold}"
            )
        if snapshot.total_stake < 0:
            raise ValidationError(f"total_stake must be non-negative, got {snapshot.total_stake}")
        if snapshot.reserve_stake < 0:
            raise ValidationError(f"reserve_stake must be non-negative, got {snapshot.reserve_stake}")

        seen: set[str] = set()
        for v in snapshot.validators:
            if v.active_stake < 0 or v.transient_stake < 0:
                raise ValidationError(
                    f"validator {v.key} has negative stake "
                    f"(active={v.active_stake}, transient={v.transient_stake})"
                )
            if v.key in seen:
                raise ValidationError(f"validator {v.key} appears more than once in the snapshot")
            seen.add(v.key)

        for key, target in allocation.items():
            if target < 0:
                raise ValidationError(f"target stake for {key} must be non-negative, got {target}")
