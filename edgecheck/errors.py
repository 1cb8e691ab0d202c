"""
Error types shared by the inference engine and its collaborators.

Two kinds of failure exist:
- Caller errors (bad lookback, too little history, empty return sample).
  These raise PreconditionViolation immediately. Nothing is "fixed up".
- Bad input files. The loader raises MarketDataError and the whole run stops,
  because every statistic downstream assumes a clean, complete series.

Numeric degeneracies (a pessimistic quantile above 1, a flat root bracket)
are not errors: they are clamped where they happen and logged.
"""

from __future__ import annotations


class EdgecheckError(Exception):
    """Base class for every error raised by edgecheck."""


class PreconditionViolation(EdgecheckError, ValueError):
    """A caller passed arguments the computation cannot honour."""


class MarketDataError(EdgecheckError):
    """A price file is missing, malformed, or contains invalid records."""


def require(condition: bool, msg: str) -> None:
    """Raise PreconditionViolation with `msg` if `condition` is false."""
    if not condition:
        raise PreconditionViolation(msg)
