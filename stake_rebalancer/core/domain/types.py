"""Core shared data models and schemas.

This module defines the canonical Pydantic models used across the system for
tier configuration, pool snapshots, adjustment actions and pending
adjustments. All stake amounts are integer lamports.
"""

# pylint: disable=line-too-long,missing-class-docstring,missing-function-docstring
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from stake_rebalancer.core.domain.errors import ValidationError

ActivationState = Literal["activating", "deactivating", "inactive", "unknown"]
Direction = Literal["increase", "decrease"]


# ---------------------------------------------------------------------------
# Tier configuration models
# ---------------------------------------------------------------------------


class Tier(BaseModel):
    name: str = Field(..., min_length=1)
    weight: int = Field(..., gt=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


class ValidatorAssignment(BaseModel):
    """Places one validator (vote account) into a named tier."""

    validator_key: str = Field(
        ...,
        min_length=1,
        alias="pubkey",
        description="Validator vote account address.",
    )
    tier: str = Field(
        ...,
        min_length=1,
        description="Name of the Tier this validator belongs to.",
    )

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Pool snapshot models
# ---------------------------------------------------------------------------


class ValidatorState(BaseModel):
    key: str = Field(..., min_length=1)
    active_stake: int = Field(..., ge=0)
    transient_stake: int = Field(default=0, ge=0)
    activation_state: ActivationState = "unknown"

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def current_stake(self) -> int:
        return self.active_stake + self.transient_stake


class PoolSnapshot(BaseModel):
    """
    Point-in-time view of a stake pool, read once per rebalance cycle.

    Notes:
    - total_stake is the pool's total lamports (validators + reserve).
    - reserve_stake is the reserve account balance at read time. Increases
      re-read the live reserve before executing.
    """

    total_stake: int = Field(..., ge=0)
    reserve_stake: int = Field(..., ge=0)
    validators: tuple[ValidatorState, ...] = ()

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_unique_validators(self) -> PoolSnapshot:
        seen: set[str] = set()
        for v in self.validators:
            if v.key in seen:
                raise ValueError(f"validator {v.key} appears more than once in the snapshot")
            seen.add(v.key)
        return self

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> PoolSnapshot:
        """Build a snapshot from a JSON-compatible object.

        Raises ValidationError on negative or inconsistent values.
        """
        try:
            return cls.model_validate(obj)
        except PydanticValidationError as exc:
            raise ValidationError(f"invalid pool snapshot: {exc}") from exc

    def validator(self, key: str) -> ValidatorState | None:
        for v in self.validators:
            if v.key == key:
                return v
        return None

    def by_key(self) -> dict[str, ValidatorState]:
        return {v.key: v for v in self.validators}


# ---------------------------------------------------------------------------
# Adjustment models
# ---------------------------------------------------------------------------


class AdjustmentAction(BaseModel):
    """Move ``amount`` lamports into (increase) or out of (decrease) a validator."""

    validator_key: str = Field(..., min_length=1)
    direction: Direction
    amount: int = Field(..., gt=0)

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_increase(self) -> bool:
        return self.direction == "increase"

    def is_decrease(self) -> bool:
        return self.direction == "decrease"


class PendingAdjustment(BaseModel):
    validator_key: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)

    model_config = ConfigDict(extra="forbid", frozen=True)
