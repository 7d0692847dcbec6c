"""Fatal error taxonomy for a rebalance cycle.

Only configuration and snapshot problems are raised as exceptions. Everything
that can go wrong for a single validator (liquidity, in-flight transitions,
execution failures, validators missing from the pool) is a planning outcome
and is reported through ``SkipReason`` codes instead.
"""

from __future__ import annotations


class RebalanceError(Exception):
    """Base class for errors that abort a rebalance cycle."""


class ConfigError(RebalanceError):
    """Malformed tier / assignment / reserve configuration.

    Raised before any action is planned or executed.
    """


class ValidationError(RebalanceError):
    """Pool snapshot or planner input contains negative or inconsistent values.

    The cycle is skipped; the next trigger starts from a fresh snapshot.
    """
