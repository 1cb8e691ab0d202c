"""
Monte-Carlo permutation test (MCPT) for the optimized crossover system.

Two questions, one loop:

1. Is the optimized in-sample return better than what the same grid
   search finds on price paths with no exploitable structure?
   p-value = fraction of replications scoring at least the original.

2. How much of the optimized return is training bias?
   A grid search run on permuted data cannot find real skill, so whatever
   it earns beyond the trend is pure selection bias. Averaging that over
   replications and subtracting it from the original result gives an
   estimate of the return we could expect going forward.

Permutation scheme:
- Only the evaluated span, prices[max_lookback-1:], is permuted. Its first
  and last prices are fixed anchors, so every permuted path has the same
  total drift as the original.
- The one-bar changes of that span are shuffled (Fisher-Yates) and the path
  is rebuilt by cumulative summation from the first anchor. This destroys
  serial dependence while keeping the exact set of changes.
- Replication 0 is always the unpermuted original and counts as one
  "at least as good" outcome, so p >= 1/R.

Bias decomposition per replication:
    trend_component = (n_long - n_short) * trend_per_bar
    training_bias   = score - trend_component
    unbiased_return = original - mean(training_bias over replications 1..R-1)
    skill           = unbiased_return - original trend_component
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from edgecheck.errors import require
from edgecheck.inference.rng import PseudoRandomSource
from edgecheck.inference.signal_grid import (
    MIN_EVALUATION_BARS,
    LookbackPair,
    as_log_prices,
    optimize_crossover,
)

log = logging.getLogger("edgecheck.mcpt")


@dataclass
class Replication:
    """Grid-search outcome on one (possibly permuted) price path."""
    index: int
    score: float
    pair: LookbackPair
    n_long: int
    n_short: int
    trend_component: float

    @property
    def training_bias(self) -> float:
        return self.score - self.trend_component


@dataclass
class PermutationResult:
    """Significance and bias decomposition for the optimized system."""
    original: float                 # Optimized return on the real data
    count: int                      # Replications (incl. the original) scoring >= original
    replications: int
    total_trend: float              # x[n-1] - x[max_lookback-1]
    trend_per_bar: float
    original_n_long: int
    original_n_short: int
    original_trend_component: float
    mean_training_bias: float       # NaN when replications == 1
    unbiased_return: float
    skill: float
    records: list[Replication] = field(default_factory=list)

    @property
    def p_value(self) -> float:
        return self.count / self.replications

    def summary(self) -> dict:
        """Return a clean summary dict for display."""
        return {
            "p_value": f"{self.p_value:.4f}",
            "replications": self.replications,
            "total_trend": f"{self.total_trend:.4f}",
            "original_nshort": self.original_n_short,
            "original_nlong": self.original_n_long,
            "original_return": f"{self.original:.4f}",
            "trend_component": f"{self.original_trend_component:.4f}",
            "training_bias": f"{self.mean_training_bias:.4f}",
            "skill": f"{self.skill:.4f}",
            "unbiased_return": f"{self.unbiased_return:.4f}",
        }


def price_changes(span: Sequence[float] | np.ndarray) -> np.ndarray:
    """One-bar changes: changes[k] = span[k+1] - span[k]."""
    arr = as_log_prices(span, name="span")
    require(len(arr) >= 2, f"need at least 2 prices to compute changes, got {len(arr)}")
    return np.diff(arr)


def shuffle_changes(changes: np.ndarray, rng: PseudoRandomSource) -> None:
    """
    Fisher-Yates shuffle in place.

    With i entries still unshuffled, draw j uniformly in [0, i) and swap
    entry i-1 with entry j.
    """
    i = len(changes)
    while i > 1:
        j = rng.next_below(i)
        i -= 1
        changes[i], changes[j] = changes[j], changes[i]


def rebuild_span(first: float, last: float, changes: np.ndarray) -> np.ndarray:
    """
    Rebuild a price path from its first anchor and shuffled changes.

    Cumulative summation in a different order can miss the terminal anchor
    by a rounding residue, so the last price is pinned to `last` exactly.
    """
    span = np.cumsum(np.concatenate(([first], changes)))
    span[-1] = last
    return span


def permute_span(
    path: np.ndarray,
    start: int,
    changes: np.ndarray,
    rng: PseudoRandomSource,
) -> None:
    """
    Shuffle `changes` in place and rewrite path[start:] from them.

    path[start] and path[-1] are the anchors and keep their values. The
    prefix before `start` is not touched. Calling this repeatedly with the
    same `changes` permutes the previous permutation.
    """
    shuffle_changes(changes, rng)
    path[start:] = rebuild_span(path[start], path[-1], changes)


def permute_prices(
    prices: Sequence[float] | np.ndarray,
    rng: PseudoRandomSource,
    start: int = 0,
) -> np.ndarray:
    """
    One permuted copy of `prices`.

    Prices before `start` are copied unchanged; prices[start] and
    prices[-1] are the anchors of the permuted span.
    """
    x = as_log_prices(prices)
    require(0 <= start <= len(x) - 2, f"permutation span starting at {start} has fewer than 2 prices")
    out = x.copy()
    permute_span(out, start, price_changes(x[start:]), rng)
    return out


def permutation_test(
    prices: Sequence[float] | np.ndarray,
    max_lookback: int,
    replications: int,
    rng: PseudoRandomSource | None = None,
    seed: int | None = None,
) -> PermutationResult:
    """
    Run the permutation test on the lookback grid search.

    Args:
        prices: Log prices.
        max_lookback: Largest long lookback searched in every replication.
        replications: Total replications including the unpermuted original.
        rng: Generator to draw shuffles from. A fresh default-seeded one
            is created when omitted.
        seed: If given, reseeds `rng` before the first shuffle.

    Returns:
        PermutationResult. Bias fields are NaN when replications == 1.
    """
    require(max_lookback >= 2, f"max_lookback must be at least 2, got {max_lookback}")
    require(replications >= 1, f"replications must be at least 1, got {replications}")
    x = as_log_prices(prices)
    n = len(x)
    require(
        n - max_lookback >= MIN_EVALUATION_BARS,
        f"number of prices ({n}) must be at least {MIN_EVALUATION_BARS} greater "
        f"than max_lookback ({max_lookback})",
    )

    if rng is None:
        rng = PseudoRandomSource()
    if seed is not None:
        rng.seed(seed)

    start = max_lookback - 1
    first_anchor, last_anchor = x[start], x[-1]
    total_trend = float(last_anchor - first_anchor)
    trend_per_bar = total_trend / (n - max_lookback)

    # The change array persists across replications: each shuffle permutes the last one
    changes = price_changes(x[start:])
    path = x.copy()

    records: list[Replication] = []
    original_rec: Replication | None = None
    count = 0
    bias_sum = 0.0

    for irep in range(replications):
        if irep:
            permute_span(path, start, changes, rng)

        fit = optimize_crossover(path, max_lookback)
        rec = Replication(
            index=irep,
            score=fit.score,
            pair=fit.pair,
            n_long=fit.n_long,
            n_short=fit.n_short,
            trend_component=(fit.n_long - fit.n_short) * trend_per_bar,
        )
        records.append(rec)
        log.debug(
            "%5d: Ret=%.3f Lookback=%d %d NS, NL=%d %d TrndComp=%.4f TrnBias=%.4f",
            irep, rec.score, rec.pair.short, rec.pair.long, rec.n_short, rec.n_long,
            rec.trend_component, rec.training_bias,
        )

        if irep == 0:
            original_rec = rec
            count = 1
        else:
            bias_sum += rec.training_bias
            if rec.score >= original_rec.score:
                count += 1

    if replications > 1:
        mean_training_bias = bias_sum / (replications - 1)
    else:
        log.warning("Only the original replication was run; training bias cannot be estimated")
        mean_training_bias = math.nan

    unbiased_return = original_rec.score - mean_training_bias
    skill = unbiased_return - original_rec.trend_component

    result = PermutationResult(
        original=original_rec.score,
        count=count,
        replications=replications,
        total_trend=total_trend,
        trend_per_bar=trend_per_bar,
        original_n_long=original_rec.n_long,
        original_n_short=original_rec.n_short,
        original_trend_component=original_rec.trend_component,
        mean_training_bias=mean_training_bias,
        unbiased_return=unbiased_return,
        skill=skill,
        records=records,
    )
    log.info(
        "MCPT: %d prices, %d replications, max lookback %d -> p=%.4f skill=%.4f",
        n, replications, max_lookback, result.p_value, skill,
    )
    return result
