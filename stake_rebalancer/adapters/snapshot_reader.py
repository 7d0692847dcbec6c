"""Pool state readers.

``SnapshotFileReader`` loads a pool snapshot exported by external tooling
(the on-chain stake pool and validator list decoded elsewhere) and can
overlay the live reserve balance from RPC. ``StaticPoolStateReader`` serves a
fixed snapshot and is used for tests and offline planning.

Snapshot document:
    {
      "total_stake": 800000000000,
      "reserve_stake": 900000000000,
      "validators": [
        {"key": "sTAc...", "active_stake": 0, "transient_stake": 0,
         "activation_state": "inactive"}
      ]
    }

When a validator has no ``activation_state`` it is derived from its
transient stake: positive transient stake is treated as activating, zero as
inactive, and a missing transient stake field as unknown.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from stake_rebalancer.core.domain.errors import ValidationError
from stake_rebalancer.core.domain.types import PoolSnapshot

if TYPE_CHECKING:
    from stake_rebalancer.adapters.solana_rpc import SolanaRpcClient

LOGGER = logging.getLogger(__name__)


def _derive_activation_state(raw: dict[str, Any]) -> str:
    if "transient_stake" not in raw:
        return "unknown"
    try:
        transient = int(raw["transient_stake"])
    except (TypeError, ValueError):
        return "unknown"
    if transient > 0:
        LOGGER.debug(
            "Assuming transient stake is activating",
            extra={"validator": raw.get("key")},
        )
        return "activating"
    return "inactive"


def snapshot_from_json_obj(obj: Any) -> PoolSnapshot:
    """Normalize an exported snapshot document into a PoolSnapshot."""
    if not isinstance(obj, dict):
        raise ValidationError("pool snapshot must be a JSON object")

    data = dict(obj)
    validators: list[Any] = []
    for raw in data.get("validators", []):
        if isinstance(raw, dict):
            v = dict(raw)
            # Exports keyed by vote account are accepted as-is.
            if "key" not in v and "vote_account" in v:
                v["key"] = v.pop("vote_account")
            if v.get("activation_state") is None:
                v["activation_state"] = _derive_activation_state(v)
            validators.append(v)
        else:
            validators.append(raw)
    data["validators"] = validators

    return PoolSnapshot.from_json_obj(data)


class SnapshotFileReader:
    """Reads the pool snapshot from a JSON file, optionally with a live reserve."""

    def __init__(
        self,
        path: str | Path,
        *,
        rpc: SolanaRpcClient | None = None,
        reserve_address: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._rpc = rpc
        self._reserve_address = reserve_address

    def _live_reserve_enabled(self) -> bool:
        return self._rpc is not None and self._reserve_address is not None

    def _load(self) -> PoolSnapshot:
        if not self._path.exists():
            raise ValidationError(f"pool snapshot file not found: {self._path}")
        try:
            obj = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"pool snapshot {self._path} is not valid JSON: {exc}") from exc
        return snapshot_from_json_obj(obj)

    def read_snapshot(self, pool_address: str) -> PoolSnapshot:
        snapshot = self._load()
        if self._live_reserve_enabled():
            reserve = self.read_reserve_stake(pool_address)
            snapshot = snapshot.model_copy(update={"reserve_stake": reserve})
        LOGGER.info(
            "Pool snapshot loaded",
            extra={
                "pool": pool_address,
                "path": str(self._path),
                "total_stake": snapshot.total_stake,
                "reserve_stake": snapshot.reserve_stake,
                "validators": len(snapshot.validators),
            },
        )
        return snapshot

    def read_reserve_stake(self, pool_address: str) -> int:
        if self._live_reserve_enabled():
            return self._rpc.get_balance(self._reserve_address)
        return self._load().reserve_stake


class StaticPoolStateReader:
    """Serves one fixed snapshot.

    ``reserve_readings`` optionally scripts successive live reserve balances;
    once exhausted, the last value keeps being returned.
    """

    def __init__(
        self,
        snapshot: PoolSnapshot,
        reserve_readings: Iterable[int] | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._reserve_readings = list(reserve_readings or [])
        self.reserve_reads = 0

    def read_snapshot(self, pool_address: str) -> PoolSnapshot:
        return self._snapshot

    def read_reserve_stake(self, pool_address: str) -> int:
        self.reserve_reads += 1
        if not self._reserve_readings:
            return self._snapshot.reserve_stake
        if len(self._reserve_readings) > 1:
            return self._reserve_readings.pop(0)
        return self._reserve_readings[0]
