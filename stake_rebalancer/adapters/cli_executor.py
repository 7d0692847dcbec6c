"""Adjustment executors.

``CliStakeExecutor`` shells out to the ``spl-stake-pool`` command line tool;
``RecordingExecutor`` is an in-process stand-in for tests and dry runs.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Sequence

from stake_rebalancer.core.domain.units import lamports_to_sol_str

if TYPE_CHECKING:
    from stake_rebalancer.core.domain.types import AdjustmentAction

LOGGER = logging.getLogger(__name__)

_SUBCOMMANDS = {
    "increase": "increase-validator-stake",
    "decrease": "decrease-validator-stake",
}


class CliStakeExecutor:
    """Apply adjustments via ``spl-stake-pool <increase|decrease>-validator-stake``.

    The amount argument is the lamport amount rendered in SOL with 9 decimals.
    Arguments are passed as a list, never through a shell.
    """

    def __init__(
        self,
        pool_address: str,
        *,
        command: str = "spl-stake-pool",
        extra_args: Sequence[str] = (),
        timeout_seconds: float = 120.0,
        dry_run: bool = False,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self._pool_address = pool_address
        self._command = command
        self._extra_args = list(extra_args)
        self._timeout_seconds = timeout_seconds
        self._dry_run = dry_run
        self._runner = runner

    def build_argv(self, action: AdjustmentAction) -> list[str]:
        return [
            self._command,
            *self._extra_args,
            _SUBCOMMANDS[action.direction],
            self._pool_address,
            action.validator_key,
            lamports_to_sol_str(action.amount),
        ]

    def apply(self, action: AdjustmentAction) -> bool:
        argv = self.build_argv(action)
        LOGGER.info(
            "Requesting stake %s",
            action.direction,
            extra={
                "validator": action.validator_key,
                "lamports": action.amount,
                "command": " ".join(argv),
                "dry_run": self._dry_run,
            },
        )

        if self._dry_run:
            return True

        try:
            proc = self._runner(
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            LOGGER.error(
                "Error running stake %s command: %s",
                action.direction,
                exc,
                extra={"validator": action.validator_key},
            )
            return False

        if proc.returncode != 0:
            LOGGER.error(
                "Stake %s failed (exit %s): %s",
                action.direction,
                proc.returncode,
                (proc.stderr or "").strip(),
                extra={"validator": action.validator_key},
            )
            return False

        LOGGER.info(
            "Stake %s output: %s",
            action.direction,
            (proc.stdout or "").strip(),
            extra={"validator": action.validator_key},
        )
        return True


@dataclass(slots=True)
class RecordingExecutor:
    """Records every action; fails for validators listed in ``fail_for``."""

    fail_for: set[str] = field(default_factory=set)
    applied: list[AdjustmentAction] = field(default_factory=list)
    attempted: list[AdjustmentAction] = field(default_factory=list)

    def apply(self, action: AdjustmentAction) -> bool:
        self.attempted.append(action)
        if action.validator_key in self.fail_for:
            return False
        self.applied.append(action)
        return True
