"""Public API for the stake_rebalancer package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Executors / readers
# ----------------------------------------------------------------------
from stake_rebalancer.adapters.cli_executor import CliStakeExecutor, RecordingExecutor
from stake_rebalancer.adapters.snapshot_reader import SnapshotFileReader, StaticPoolStateReader

# ----------------------------------------------------------------------
# Core engine
# ----------------------------------------------------------------------
from stake_rebalancer.core.allocation.allocator import (
    Allocator,
    EqualWeightAllocator,
    TieredAllocator,
    build_allocator,
)

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from stake_rebalancer.core.config.rebalance_config import ExecutorConfig, RebalanceConfig

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from stake_rebalancer.core.domain.errors import ConfigError, RebalanceError, ValidationError
from stake_rebalancer.core.domain.ledger import PendingAdjustmentLedger
from stake_rebalancer.core.domain.skip_reasons import SkipReason
from stake_rebalancer.core.domain.types import (
    AdjustmentAction,
    PendingAdjustment,
    PoolSnapshot,
    Tier,
    ValidatorAssignment,
    ValidatorState,
)
from stake_rebalancer.core.planning.rebalance_planner import (
    RebalancePlan,
    RebalancePlanner,
    ReserveConfig,
    SkippedValidator,
)

# ----------------------------------------------------------------------
# Ports
# ----------------------------------------------------------------------
from stake_rebalancer.core.ports.adjustment_executor import AdjustmentExecutor
from stake_rebalancer.core.ports.pool_state_reader import EpochSource, PoolStateReader

# ----------------------------------------------------------------------
# Runtime
# ----------------------------------------------------------------------
from stake_rebalancer.runtime.cycle import CycleResult, RebalanceCycle
from stake_rebalancer.runtime.ledger_store import CycleState, LedgerFileStore

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Config
    "RebalanceConfig",
    "ExecutorConfig",

    # Domain
    "Tier",
    "ValidatorAssignment",
    "ValidatorState",
    "PoolSnapshot",
    "AdjustmentAction",
    "PendingAdjustment",
    "PendingAdjustmentLedger",
    "SkipReason",
    "RebalanceError",
    "ConfigError",
    "ValidationError",

    # Engine
    "Allocator",
    "TieredAllocator",
    "EqualWeightAllocator",
    "build_allocator",
    "RebalancePlanner",
    "RebalancePlan",
    "ReserveConfig",
    "SkippedValidator",

    # Ports and adapters
    "PoolStateReader",
    "EpochSource",
    "AdjustmentExecutor",
    "SnapshotFileReader",
    "StaticPoolStateReader",
    "CliStakeExecutor",
    "RecordingExecutor",

    # Runtime
    "RebalanceCycle",
    "CycleResult",
    "CycleState",
    "LedgerFileStore",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("stake-rebalancer")
except PackageNotFoundError:
    __version__ = "0.0.0"
