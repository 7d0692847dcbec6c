"""JSON persistence for state carried across rebalance cycles."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from stake_rebalancer.core.domain.errors import ValidationError
from stake_rebalancer.core.domain.ledger import LedgerPolicy, PendingAdjustmentLedger
from stake_rebalancer.core.domain.types import PendingAdjustment

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


@dataclass(slots=True)
class CycleState:
    """Everything one cycle hands to the next."""

    ledger: PendingAdjustmentLedger = field(default_factory=PendingAdjustmentLedger)
    last_rebalance_epoch: int | None = None


class LedgerFileStore:
    """Loads and saves CycleState as a JSON document.

    The ledger policy always comes from the current configuration; a
    different policy stored in the file is ignored.
    """

    def __init__(self, path: str | Path, *, policy: LedgerPolicy = "overwrite") -> None:
        self._path = Path(path)
        self._policy = policy

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CycleState:
        if not self._path.exists():
            return CycleState(ledger=PendingAdjustmentLedger(policy=self._policy))

        try:
            data: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"ledger file {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError(f"ledger file {self._path} must contain a JSON object")

        stored_policy = data.get("policy")
        if stored_policy is not None and stored_policy != self._policy:
            LOGGER.info(
                "Ledger policy changed since last cycle",
                extra={"stored_policy": stored_policy, "policy": self._policy},
            )

        try:
            entries = [PendingAdjustment.model_validate(e) for e in data.get("pending", [])]
        except ValueError as exc:
            raise ValidationError(f"ledger file {self._path} has invalid entries: {exc}") from exc

        epoch = data.get("last_rebalance_epoch")
        return CycleState(
            ledger=PendingAdjustmentLedger(policy=self._policy, entries=entries),
            last_rebalance_epoch=None if epoch is None else int(epoch),
        )

    def save(self, state: CycleState) -> None:
        payload = {
            "schema_version": SCHEMA_VERSION,
            "policy": state.ledger.policy,
            "last_rebalance_epoch": state.last_rebalance_epoch,
            "pending": [e.model_dump(mode="json") for e in state.ledger.all()],
        }

        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)
