"""Rebalance configuration model.

Read once at the start of every cycle. Accepts both snake_case keys and the
camelCase keys used by existing pool manager configuration files, e.g.:

    {
      "stakePoolAddress": "FGHa...",
      "stakeReservePublicKey": "F1fp...",
      "tiers": [{"name": "Tier 1", "weight": 4}, {"name": "Tier 2", "weight": 3}],
      "validatorAssignments": [{"pubkey": "sTAc...", "tier": "Tier 1"}],
      "minimumReserve": 5000000000,
      "rebalanceIntervalEpochs": 10
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from stake_rebalancer.core.allocation.allocator import find_layout_problem, tier_members
from stake_rebalancer.core.domain.errors import ConfigError
from stake_rebalancer.core.domain.types import Tier, ValidatorAssignment
from stake_rebalancer.core.planning.rebalance_planner import ReserveConfig


class ExecutorConfig(BaseModel):
    """How adjustment actions are submitted."""

    kind: Literal["cli"] = "cli"
    command: str = Field("spl-stake-pool", min_length=1)
    extra_args: list[str] = Field(default_factory=list)
    timeout_seconds: float = Field(120.0, gt=0)
    dry_run: bool = False

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RebalanceConfig(BaseModel):
    """Structured tier, reserve and pool configuration."""

    stake_pool_address: str = Field(..., min_length=1, alias="stakePoolAddress")
    stake_reserve_address: str | None = Field(
        default=None,
        min_length=1,
        alias="stakeReservePublicKey",
    )
    rpc_url: str | None = Field(default=None, min_length=1, alias="rpcUrl")

    tiers: list[Tier] = Field(..., min_length=1)
    validator_assignments: list[ValidatorAssignment] = Field(
        default_factory=list,
        alias="validatorAssignments",
    )

    # 5 SOL
    minimum_reserve: int = Field(5_000_000_000, ge=0, alias="minimumReserve")
    # 0.1 SOL
    min_adjustment_threshold: int = Field(100_000_000, ge=0, alias="minimumStakeAdjustment")
    rebalance_interval_epochs: int = Field(10, ge=1, alias="rebalanceIntervalEpochs")

    allocator: Literal["tiered", "equal"] = Field("tiered", alias="distributionAlgorithm")
    ledger_policy: Literal["overwrite", "accumulate"] = Field("overwrite", alias="ledgerPolicy")

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> RebalanceConfig:
        """Create a RebalanceConfig from a JSON-compatible object.

        Raises ConfigError for any structural or consistency problem.
        """
        try:
            return cls.model_validate(obj)
        except PydanticValidationError as exc:
            raise ConfigError(f"invalid rebalance config: {exc}") from exc

    @classmethod
    def from_json_file(cls, path: str | Path) -> RebalanceConfig:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        try:
            obj = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"config file {path} is not valid JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise ConfigError(f"config file {path} must contain a JSON object")
        return cls.from_json_obj(obj)

    @model_validator(mode="after")
    def validate_consistency(self) -> RebalanceConfig:
        """Validate tier names, weights and assignments against each other."""
        problem = find_layout_problem(self.tiers, self.validator_assignments)
        if problem is not None:
            raise ValueError(problem)
        return self

    def to_reserve_config(self) -> ReserveConfig:
        return ReserveConfig(minimum_reserve=self.minimum_reserve)

    def tier_members(self) -> dict[str, list[str]]:
        """Return tier name -> validator keys, in configured order."""
        return tier_members(self.tiers, self.validator_assignments)
