"""Command line entrypoint: run one rebalance cycle.

Scheduling is external (cron, k8s CronJob, systemd timer). Each invocation
runs at most one cycle and exits.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from stake_rebalancer.adapters.cli_executor import CliStakeExecutor
from stake_rebalancer.adapters.snapshot_reader import SnapshotFileReader
from stake_rebalancer.adapters.solana_rpc import SolanaRpcClient
from stake_rebalancer.core.config.rebalance_config import RebalanceConfig
from stake_rebalancer.core.domain.errors import ConfigError, RebalanceError, ValidationError
from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
from stake_rebalancer.core.domain.units import lamports_to_sol_str
from stake_rebalancer.core.events.event_bus import EventBus
from stake_rebalancer.core.events.sinks.file_recorder import FileRecorderSink
from stake_rebalancer.core.events.sinks.sink_logging import LoggingEventSink
from stake_rebalancer.runtime.cycle import CycleResult, RebalanceCycle
from stake_rebalancer.runtime.ledger_store import CycleState, LedgerFileStore
from stake_rebalancer.runtime.prometheus_metrics import PrometheusMetricsClient

if TYPE_CHECKING:
    from stake_rebalancer.core.events.event_sink import EventSink

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CYCLE_SKIPPED = 1
EXIT_CONFIG_ERROR = 2

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_event_bus(events_path: Path | None) -> EventBus:
    sinks: list[EventSink] = [LoggingEventSink(logging.getLogger("events"))]
    if events_path is not None:
        sinks.append(FileRecorderSink(events_path))
    return EventBus(sinks=sinks)


def print_cycle_summary(result: CycleResult) -> None:
    """Print a human-readable summary of the cycle to stdout."""
    print(f"Cycle status: {result.status} (epoch={result.epoch})")
    if result.plan is None:
        return

    print()
    print(f"{'validator':<48} {'target (SOL)':>22}")
    for key, target in result.allocation.items():
        print(f"{key:<48} {lamports_to_sol_str(target):>22}")

    print()
    print("Planned actions:")
    if not result.plan.actions:
        print("  (none)")
    for action in result.plan.actions:
        print(f"  {action.direction:<8} {action.validator_key:<48} {lamports_to_sol_str(action.amount):>22}")

    if result.plan.skipped:
        print()
        print("Skipped:")
        for s in result.plan.skipped:
            print(f"  {s.reason:<24} {s.validator_key:<48} delta={s.delta}")

    if result.status == "completed":
        print()
        print(
            f"Applied: {len(result.applied)}  Failed: {len(result.failed)}  "
            f"Deferred: {len(result.deferred)}"
        )
        for s in result.execution_skips:
            print(f"  {s.reason:<24} {s.validator_key:<48} {lamports_to_sol_str(s.delta):>22}")

    pending = result.state.ledger.all() if result.status == "completed" else result.plan.ledger.all()
    print()
    print("Pending stake adjustments:")
    if not pending:
        print("  (none)")
    for entry in pending:
        print(f"  {entry.validator_key:<48} {lamports_to_sol_str(entry.amount):>22}")


def publish_cycle_metrics(
    metrics: PrometheusMetricsClient,
    *,
    pool_address: str,
    result: CycleResult,
) -> None:
    """Push per-cycle gauges (best effort)."""
    if not metrics.is_enabled():
        return

    labels = {"pool": pool_address, "status": result.status}
    plan = result.plan

    try:
        metrics.set_gauge(
            name="stake_rebalancer_planned_actions",
            value=float(0 if plan is None else len(plan.actions)),
            labels=labels,
        )
        metrics.set_gauge(
            name="stake_rebalancer_skipped_validators",
            value=float(0 if plan is None else len(plan.skipped)),
            labels=labels,
        )
        metrics.set_gauge(name="stake_rebalancer_applied_actions", value=float(len(result.applied)), labels=labels)
        metrics.set_gauge(name="stake_rebalancer_failed_actions", value=float(len(result.failed)), labels=labels)
        metrics.set_gauge(name="stake_rebalancer_deferred_actions", value=float(len(result.deferred)), labels=labels)
        metrics.set_gauge(
            name="stake_rebalancer_pending_lamports",
            value=float(result.state.ledger.total()),
            labels=labels,
        )
        for reason, count in result.execution_skip_counts().items():
            metrics.set_gauge(
                name="stake_rebalancer_execution_skips",
                value=float(count),
                labels={**labels, "reason": reason},
            )
        metrics.push_all(job="stake_rebalancer")
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Prometheus push failed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run one tiered stake rebalance cycle for a stake pool"
    )

    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the rebalance JSON config.",
    )

    parser.add_argument(
        "--snapshot",
        type=Path,
        required=True,
        help="Path to the exported pool snapshot JSON.",
    )

    parser.add_argument(
        "--ledger",
        type=Path,
        default=None,
        help="JSON file holding pending adjustments and the last rebalanced epoch.",
    )

    parser.add_argument(
        "--events",
        type=Path,
        default=None,
        help="Append rebalance events as JSON lines to this file.",
    )

    parser.add_argument(
        "--plan-only",
        action="store_true",
        help="Compute and print the plan without executing anything.",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log executor commands instead of running them.",
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore the rebalance epoch interval.",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def run(argv: Sequence[str] | None = None) -> int:
    # pylint: disable=too-many-locals
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # ------------------------------------------------------------------
    # Load config (fatal on error, before any action)
    # ------------------------------------------------------------------

    try:
        cfg = RebalanceConfig.from_json_file(args.config)
    except ConfigError as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    rpc = SolanaRpcClient(cfg.rpc_url) if cfg.rpc_url else None

    reader = SnapshotFileReader(
        args.snapshot,
        rpc=rpc,
        reserve_address=cfg.stake_reserve_address,
    )

    executor = CliStakeExecutor(
        cfg.stake_pool_address,
        command=cfg.executor.command,
        extra_args=cfg.executor.extra_args,
        timeout_seconds=cfg.executor.timeout_seconds,
        dry_run=cfg.executor.dry_run or args.dry_run,
    )

    store = LedgerFileStore(args.ledger, policy=cfg.ledger_policy) if args.ledger else None
    event_bus = _build_event_bus(args.events)

    try:
        try:
            state = (
                store.load()
                if store is not None
                else CycleState(ledger=PendingAdjustmentLedger(policy=cfg.ledger_policy))
            )
            cycle = RebalanceCycle(
                config=cfg,
                reader=reader,
                executor=executor,
                event_bus=event_bus,
                epoch_source=rpc,
            )
            result = cycle.run(state, plan_only=args.plan_only, force=args.force)
        except ConfigError as exc:
            LOGGER.error("Invalid configuration: %s", exc)
            return EXIT_CONFIG_ERROR
        except ValidationError as exc:
            LOGGER.error("Invalid pool state; rebalance skipped until next trigger: %s", exc)
            return EXIT_CYCLE_SKIPPED
        except RebalanceError as exc:
            LOGGER.error("Rebalance cycle aborted: %s", exc)
            return EXIT_CYCLE_SKIPPED
    finally:
        event_bus.close()
        if rpc is not None:
            rpc.close()

    print_cycle_summary(result)

    if store is not None and result.status == "completed":
        store.save(result.state)

    publish_cycle_metrics(
        PrometheusMetricsClient(),
        pool_address=cfg.stake_pool_address,
        result=result,
    )

    return EXIT_OK


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
