"""Reason codes for validators that did not produce an adjustment action."""

from __future__ import annotations


class SkipReason:
    """String constants attached to ``SkippedValidator`` records and events."""

    # Current stake already equals the target.
    IN_BALANCE = "IN_BALANCE"
    # |delta| (or the reserve-clamped increase) is below the minimum adjustment.
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    # Reserve minus floor leaves nothing (or too little) to stake.
    LIQUIDITY_SHORTFALL = "LIQUIDITY_SHORTFALL"
    # Transient stake is activating; increases and decreases wait.
    ACTIVATING_TRANSIENT = "ACTIVATING_TRANSIENT"
    # Transient stake is deactivating; decreases wait.
    DEACTIVATING_TRANSIENT = "DEACTIVATING_TRANSIENT"
    # Validator is assigned to a tier but not present in the pool snapshot.
    MISSING_VALIDATOR = "MISSING_VALIDATOR"
    # Executor reported failure (or raised) for an action; recorded per cycle run.
    EXECUTION_FAILURE = "EXECUTION_FAILURE"
