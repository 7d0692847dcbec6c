"""Lamport / SOL conversion helpers."""

from __future__ import annotations

from decimal import Decimal

LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol_str(lamports: int) -> str:
    """Render lamports as a SOL amount with exactly 9 decimals.

    Uses Decimal so large balances do not lose precision.
    """
    if lamports < 0:
        raise ValueError("lamports must be non-negative")
    return f"{Decimal(lamports) / Decimal(LAMPORTS_PER_SOL):.9f}"
