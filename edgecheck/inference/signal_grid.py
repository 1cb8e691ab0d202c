"""
Dual moving-average crossover: exhaustive lookback search.

The system under test is deliberately primitive. At each bar we compare
the mean of the last S log prices with the mean of the last L log prices
(S < L):

    short mean > long mean  -> long for the next bar
    short mean < long mean  -> short for the next bar
    exact tie               -> flat

and collect the next bar's signed log return.

optimize_crossover() tries every pair with 2 <= L <= max_lookback and
1 <= S < L, and keeps the pair with the highest cumulative return. That
search is exactly what makes the in-sample result optimistic, and
measuring how optimistic is the job of the walk-forward and permutation
modules.

Both the search and the out-of-sample evaluation go through one routine,
evaluate_crossover(), which maintains the two window sums incrementally.
Sharing it keeps the moving-average definition bit-for-bit identical
between training and testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Sequence

import numpy as np

from edgecheck.errors import require

log = logging.getLogger("edgecheck.grid")

# Safety margin of evaluable bars required beyond max_lookback by the
# walk-forward and permutation studies.
MIN_EVALUATION_BARS = 10


class Position(IntEnum):
    """Per-bar market position. The value is the sign applied to the next return."""
    SHORT = -1
    FLAT = 0
    LONG = 1


PositionRule = Callable[[float, float], Position]


def crossover_rule(short_mean: float, long_mean: float) -> Position:
    """Long above, short below, flat on an exact tie."""
    if short_mean > long_mean:
        return Position.LONG
    if short_mean < long_mean:
        return Position.SHORT
    return Position.FLAT


@dataclass(frozen=True)
class LookbackPair:
    """Short and long moving-average lookbacks, short < long."""
    short: int
    long: int

    def __post_init__(self):
        require(self.short >= 1, f"short lookback must be >= 1, got {self.short}")
        require(
            self.short < self.long,
            f"short lookback ({self.short}) must be less than long lookback ({self.long})",
        )


@dataclass
class WindowEvaluation:
    """Signed returns of one fixed pair over a span of bars."""
    total_return: float
    n_long: int
    n_short: int
    n_bars: int

    @property
    def mean_return(self) -> float:
        return self.total_return / self.n_bars


@dataclass
class GridFit:
    """Winner of the lookback grid search."""
    pair: LookbackPair
    score: float          # Cumulative log return of the winning pair
    n_long: int           # Bars spent long by the winning pair
    n_short: int          # Bars spent short by the winning pair
    n_bars: int           # Bars evaluated (identical for every trial)
    n_trials: int         # Pairs tried

    @property
    def mean_return(self) -> float:
        return self.score / self.n_bars


def as_log_prices(prices: Sequence[float] | np.ndarray, name: str = "prices") -> np.ndarray:
    """Validate a price series and return it as a 1-D float64 array."""
    arr = np.asarray(prices, dtype=np.float64)
    require(arr.ndim == 1, f"{name} must be one-dimensional, got shape {arr.shape}")
    require(bool(np.all(np.isfinite(arr))), f"{name} contains NaN or infinite values")
    return arr


def evaluate_crossover(
    x: Sequence[float],
    pair: LookbackPair,
    first: int,
    stop: int,
    rule: PositionRule = crossover_rule,
) -> WindowEvaluation:
    """
    Trade a fixed lookback pair over bars first..stop-1.

    The position taken at the close of bar i earns x[i+1] - x[i] (or its
    negation when short), so bar stop-1 reads x[stop]. Window sums are
    built once at bar `first` and then rolled forward one term at a time.

    Args:
        x: Log prices. A plain list is fastest; any indexable works.
        pair: Lookbacks to trade.
        first: First decision bar. Needs pair.long - 1 bars of history before it.
        stop: One past the last decision bar. Must not exceed len(x) - 1.
        rule: Maps (short mean, long mean) to a Position.

    Returns:
        WindowEvaluation with the cumulative return and long/short bar counts.
    """
    short_lb, long_lb = pair.short, pair.long
    require(first >= long_lb - 1, f"first bar {first} leaves no room for a {long_lb}-bar window")
    require(stop > first, f"empty evaluation span [{first}, {stop})")
    require(stop <= len(x) - 1, f"evaluation stop {stop} reads past the last price ({len(x) - 1})")

    # Sum the short window, then extend the same running sum to the long window
    short_sum = 0.0
    for j in range(first, first - short_lb, -1):
        short_sum += x[j]
    long_sum = short_sum
    for j in range(first - short_lb, first - long_lb, -1):
        long_sum += x[j]

    total = 0.0
    n_long = n_short = 0
    for i in range(first, stop):
        if i > first:
            short_sum += x[i] - x[i - short_lb]
            long_sum += x[i] - x[i - long_lb]

        position = rule(short_sum / short_lb, long_sum / long_lb)
        if position == Position.LONG:
            ret = x[i + 1] - x[i]
            n_long += 1
        elif position == Position.SHORT:
            ret = x[i] - x[i + 1]
            n_short += 1
        else:
            ret = 0.0
        total += ret

    return WindowEvaluation(total_return=total, n_long=n_long, n_short=n_short, n_bars=stop - first)


def optimize_crossover(
    prices: Sequence[float] | np.ndarray,
    max_lookback: int,
    rule: PositionRule = crossover_rule,
) -> GridFit:
    """
    Find the (short, long) pair with the highest cumulative return.

    Enumeration is long ascending over [2, max_lookback], then short
    ascending over [1, long). Only a strictly better score replaces the
    incumbent, so the first pair in that order wins ties. Tie-breaking is
    deterministic but otherwise arbitrary.

    Every trial is scored over the same bars, max_lookback - 1 through
    n - 2, so the winning pair does not depend on whether scores are
    totals or per-bar means.

    Args:
        prices: Log prices.
        max_lookback: Largest long lookback to try (>= 2).
        rule: Position rule passed to evaluate_crossover().

    Returns:
        GridFit for the winning pair.
    """
    require(max_lookback >= 2, f"max_lookback must be at least 2, got {max_lookback}")
    x = as_log_prices(prices).tolist()
    n = len(x)
    require(
        n > max_lookback,
        f"need more than max_lookback={max_lookback} prices to evaluate a single bar, got {n}",
    )

    first = max_lookback - 1
    stop = n - 1

    best: GridFit | None = None
    n_trials = 0
    for long_lb in range(2, max_lookback + 1):
        for short_lb in range(1, long_lb):
            pair = LookbackPair(short_lb, long_lb)
            trial = evaluate_crossover(x, pair, first, stop, rule)
            n_trials += 1
            if best is None or trial.total_return > best.score:
                best = GridFit(
                    pair=pair,
                    score=trial.total_return,
                    n_long=trial.n_long,
                    n_short=trial.n_short,
                    n_bars=trial.n_bars,
                    n_trials=0,
                )

    best.n_trials = n_trials
    log.debug(
        "Grid fit over %d bars: lookback=%d/%d score=%.5f (NL=%d NS=%d, %d trials)",
        best.n_bars, best.pair.short, best.pair.long, best.score, best.n_long, best.n_short, n_trials,
    )
    return best
