"""Adjustment executor protocol.

The cycle driver depends only on the boolean contract below, never on the
transport (CLI invocation, RPC call, queued job).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stake_rebalancer.core.domain.types import AdjustmentAction


class AdjustmentExecutor(Protocol):
    """Apply one stake adjustment.

    Treated as an at-most-once, possibly failing remote operation. On False
    the full action amount is assumed unexecuted.
    """

    def apply(self, action: AdjustmentAction) -> bool:
        """Submit the adjustment; return True on success."""
