"""Pending-adjustment ledger.

Carries increase amounts that were decided but not executed in one cycle
into the next one. The ledger is a plain value object: the planner receives
one, works on a copy and hands the updated copy back, so no state is shared
between cycles except what the caller chooses to keep (or persist).
"""

from __future__ import annotations

from typing import Iterable, Literal

from stake_rebalancer.core.domain.errors import ConfigError
from stake_rebalancer.core.domain.types import PendingAdjustment

LedgerPolicy = Literal["overwrite", "accumulate"]


class PendingAdjustmentLedger:
    """Ordered per-validator pending amounts.

    Policy:
    - overwrite (default): record() replaces any existing amount.
    - accumulate: record() adds to the existing amount.

    The policy only governs record(). add() always sums; it is used for
    amounts left unexecuted later in the same cycle, on top of what the
    plan already recorded.

    Insertion order is preserved; re-recording an existing validator keeps
    its original position.
    """

    def __init__(
        self,
        policy: LedgerPolicy = "overwrite",
        entries: Iterable[PendingAdjustment] | None = None,
    ) -> None:
        if policy not in ("overwrite", "accumulate"):
            raise ConfigError(f"unknown ledger policy: {policy!r}")
        self._policy: LedgerPolicy = policy
        self._amounts: dict[str, int] = {}
        for entry in entries or ():
            self.record(entry.validator_key, entry.amount)

    @property
    def policy(self) -> LedgerPolicy:
        return self._policy

    def record(self, validator_key: str, amount: int) -> None:
        """Record an unexecuted amount for a validator.

        Non-positive amounts are ignored.
        """
        if amount <= 0:
            return
        if self._policy == "accumulate":
            self._amounts[validator_key] = self._amounts.get(validator_key, 0) + amount
        else:
            self._amounts[validator_key] = amount

    def add(self, validator_key: str, amount: int) -> None:
        """Add an unexecuted amount to whatever is already pending for a validator."""
        if amount <= 0:
            return
        self._amounts[validator_key] = self._amounts.get(validator_key, 0) + amount

    def drain(self, validator_key: str) -> int:
        """Remove and return the pending amount for a validator (0 if none)."""
        return self._amounts.pop(validator_key, 0)

    def get(self, validator_key: str) -> int:
        return self._amounts.get(validator_key, 0)

    def all(self) -> list[PendingAdjustment]:
        return [
            PendingAdjustment(validator_key=key, amount=amount)
            for key, amount in self._amounts.items()
        ]

    def total(self) -> int:
        return sum(self._amounts.values())

    def copy(self) -> PendingAdjustmentLedger:
        clone = PendingAdjustmentLedger(policy=self._policy)
        clone._amounts = dict(self._amounts)
        return clone

    def __len__(self) -> int:
        return len(self._amounts)

    def __contains__(self, validator_key: object) -> bool:
        return validator_key in self._amounts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PendingAdjustmentLedger):
            return NotImplemented
        return (
            self._policy == other._policy
            and list(self._amounts.items()) == list(other._amounts.items())
        )

    def __repr__(self) -> str:
        return f"PendingAdjustmentLedger(policy={self._policy!r}, entries={self._amounts!r})"
