"""Rebalance cycle driver: snapshot -> allocate -> plan -> execute."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stake_rebalancer.core.allocation.allocator import build_allocator
from stake_rebalancer.core.domain.errors import RebalanceError
from stake_rebalancer.core.domain.skip_reasons import SkipReason
from stake_rebalancer.core.events.events import (
    AdjustmentAppliedEvent,
    AllocationComputedEvent,
    CycleCompletedEvent,
)
from stake_rebalancer.core.planning.rebalance_planner import RebalancePlan, RebalancePlanner, SkippedValidator
from stake_rebalancer.runtime.ledger_store import CycleState

if TYPE_CHECKING:
    from stake_rebalancer.core.allocation.allocator import Allocator
    from stake_rebalancer.core.config.rebalance_config import RebalanceConfig
    from stake_rebalancer.core.domain.types import AdjustmentAction
    from stake_rebalancer.core.events.event_bus import EventBus
    from stake_rebalancer.core.ports.adjustment_executor import AdjustmentExecutor
    from stake_rebalancer.core.ports.pool_state_reader import EpochSource, PoolStateReader

LOGGER = logging.getLogger(__name__)


def _count_reasons(skips: list[SkippedValidator]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for s in skips:
        counts[s.reason] = counts.get(s.reason, 0) + 1
    return counts


@dataclass(slots=True)
class CycleResult:
    """Outcome of one cycle.

    status:
    - "not_due": fewer than rebalance_interval_epochs since the last rebalance
    - "planned": plan computed, nothing executed (plan-only mode)
    - "completed": every planned action was attempted
    """

    status: str
    epoch: int | None
    state: CycleState
    plan: RebalancePlan | None = None
    allocation: dict[str, int] = field(default_factory=dict)
    applied: list[AdjustmentAction] = field(default_factory=list)
    failed: list[AdjustmentAction] = field(default_factory=list)
    # Increases held back by the live reserve re-check.
    deferred: list[AdjustmentAction] = field(default_factory=list)
    # Actions that did not go through, tagged LIQUIDITY_SHORTFALL or EXECUTION_FAILURE.
    execution_skips: list[SkippedValidator] = field(default_factory=list)

    def execution_skip_counts(self) -> dict[str, int]:
        return _count_reasons(self.execution_skips)


class RebalanceCycle:
    """Runs one rebalance cycle to completion.

    Invariant:
    - Actions are applied sequentially, in plan order.
    - The live reserve is re-read before every increase.
    - One action's failure never stops the remaining actions.
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        *,
        config: RebalanceConfig,
        reader: PoolStateReader,
        executor: AdjustmentExecutor,
        event_bus: EventBus,
        epoch_source: EpochSource | None = None,
        allocator: Allocator | None = None,
    ) -> None:
        self._cfg = config
        self._reader = reader
        self._executor = executor
        self._event_bus = event_bus
        self._epoch_source = epoch_source
        self._allocator = allocator if allocator is not None else build_allocator(config.allocator)
        self._planner = RebalancePlanner(event_bus=event_bus)
        self._reserve_cfg = config.to_reserve_config()

    def is_due(self, current_epoch: int | None, last_rebalance_epoch: int | None) -> bool:
        """True when at least rebalance_interval_epochs passed since the last rebalance."""
        if current_epoch is None or last_rebalance_epoch is None:
            return True
        return current_epoch - last_rebalance_epoch >= self._cfg.rebalance_interval_epochs

    # pylint: disable=too-many-locals
    def run(self, state: CycleState, *, plan_only: bool = False, force: bool = False) -> CycleResult:
        """Run one cycle against ``state`` and return the updated state.

        ConfigError / ValidationError propagate; nothing has been executed
        when they do.
        """
        pool = self._cfg.stake_pool_address
        threshold = self._cfg.min_adjustment_threshold

        epoch = None if self._epoch_source is None else self._epoch_source.current_epoch()
        LOGGER.info("Current epoch", extra={"epoch": epoch, "pool": pool})

        if not force and not self.is_due(epoch, state.last_rebalance_epoch):
            LOGGER.info(
                "Rebalance not due yet",
                extra={
                    "epoch": epoch,
                    "last_rebalance_epoch": state.last_rebalance_epoch,
                    "interval_epochs": self._cfg.rebalance_interval_epochs,
                },
            )
            self._emit_completed(epoch, "not_due", [], [], [], state.ledger.total(), [])
            return CycleResult(status="not_due", epoch=epoch, state=state)

        snapshot = self._reader.read_snapshot(pool)

        allocation = self._allocator.allocate(
            self._cfg.tiers,
            self._cfg.validator_assignments,
            snapshot.total_stake,
        )
        allocated = sum(allocation.values())
        self._event_bus.emit(
            AllocationComputedEvent(
                epoch=epoch,
                allocator=self._allocator.name,
                total_stake=snapshot.total_stake,
                allocated=allocated,
                unallocated=snapshot.total_stake - allocated,
                validators=len(allocation),
            )
        )

        plan = self._planner.plan(
            snapshot,
            allocation,
            state.ledger,
            threshold,
            self._reserve_cfg,
            epoch=epoch,
        )

        if plan_only:
            # Nothing executed: the carried-forward state stays as it was.
            return CycleResult(
                status="planned",
                epoch=epoch,
                state=state,
                plan=plan,
                allocation=allocation,
            )

        ledger = plan.ledger
        applied: list[AdjustmentAction] = []
        failed: list[AdjustmentAction] = []
        deferred: list[AdjustmentAction] = []
        execution_skips: list[SkippedValidator] = []

        for action in plan.actions:
            to_apply: AdjustmentAction | None = action

            if action.is_increase():
                try:
                    live_reserve = self._reader.read_reserve_stake(pool)
                    to_apply = self._planner.recheck_increase(
                        action, live_reserve, ledger, threshold, self._reserve_cfg
                    )
                except RebalanceError:
                    LOGGER.exception(
                        "Reserve re-check failed; stake increase deferred",
                        extra={"validator": action.validator_key},
                    )
                    self._planner.defer_increase(ledger, action)
                    to_apply = None

                if to_apply is None:
                    deferred.append(action)
                    execution_skips.append(
                        SkippedValidator(action.validator_key, SkipReason.LIQUIDITY_SHORTFALL, action.amount)
                    )
                    self._emit_applied(epoch, action, amount=0, success=False)
                    continue

            try:
                ok = self._executor.apply(to_apply)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception(
                    "Executor raised while applying adjustment",
                    extra={"validator": to_apply.validator_key, "direction": to_apply.direction},
                )
                ok = False

            if ok:
                applied.append(to_apply)
            else:
                LOGGER.warning(
                    "Stake %s not completed; will be re-evaluated next cycle",
                    to_apply.direction,
                    extra={"validator": to_apply.validator_key, "lamports": to_apply.amount},
                )
                failed.append(to_apply)
                execution_skips.append(
                    SkippedValidator(to_apply.validator_key, SkipReason.EXECUTION_FAILURE, to_apply.amount)
                )
                self._planner.record_execution_failure(ledger, to_apply)

            self._emit_applied(epoch, action, amount=to_apply.amount, success=ok)

        new_state = CycleState(
            ledger=ledger,
            last_rebalance_epoch=epoch if epoch is not None else state.last_rebalance_epoch,
        )

        LOGGER.info(
            "Pending stake adjustments",
            extra={"pending": [e.model_dump() for e in ledger.all()]},
        )
        self._emit_completed(epoch, "completed", applied, failed, deferred, ledger.total(), execution_skips)

        return CycleResult(
            status="completed",
            epoch=epoch,
            state=new_state,
            plan=plan,
            allocation=allocation,
            applied=applied,
            failed=failed,
            deferred=deferred,
            execution_skips=execution_skips,
        )

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    def _emit_applied(
        self,
        epoch: int | None,
        action: AdjustmentAction,
        *,
        amount: int,
        success: bool,
    ) -> None:
        self._event_bus.emit(
            AdjustmentAppliedEvent(
                epoch=epoch,
                validator_key=action.validator_key,
                direction=action.direction,
                requested=action.amount,
                amount=amount,
                success=success,
            )
        )

    # pylint: disable=too-many-arguments
    def _emit_completed(
        self,
        epoch: int | None,
        status: str,
        applied: list[AdjustmentAction],
        failed: list[AdjustmentAction],
        deferred: list[AdjustmentAction],
        pending_total: int,
        execution_skips: list[SkippedValidator],
    ) -> None:
        self._event_bus.emit(
            CycleCompletedEvent(
                epoch=epoch,
                status=status,
                applied=len(applied),
                failed=len(failed),
                deferred=len(deferred),
                pending_total=pending_total,
                skip_reasons=_count_reasons(execution_skips),
            )
        )
