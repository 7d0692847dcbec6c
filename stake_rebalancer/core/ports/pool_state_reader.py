"""Pool state reader protocol.

This module defines the boundary through which a rebalance cycle observes
the stake pool. Concrete implementations adapt RPC clients, exported
snapshot files or test fixtures to this protocol. On-chain account layout
decoding lives entirely behind it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stake_rebalancer.core.domain.types import PoolSnapshot


class PoolStateReader(Protocol):
    """Pool-facing read boundary.

    Implementations must resolve every validator's transient activation
    status or report it as "unknown"; they must not block indefinitely.
    """

    def read_snapshot(self, pool_address: str) -> PoolSnapshot:
        """Return the current PoolSnapshot for the pool."""

    def read_reserve_stake(self, pool_address: str) -> int:
        """Return the live reserve balance in lamports.

        Called before every increase so that reserve liquidity is never
        judged from a balance cached for the whole cycle.
        """


class EpochSource(Protocol):
    def current_epoch(self) -> int:
        """Return the current cluster epoch."""
