"""
Walk-forward harness for the crossover system.

Walk-forward analysis (Robert Pardo, "The Evaluation and Optimization
of Trading Strategies"):
1. Optimize lookbacks on a training window
2. Trade the frozen lookbacks on the bars that immediately follow
3. Slide forward by the test length and repeat
4. Only the out-of-sample returns count

    Fold 1: [======TRAIN======][TEST]
    Fold 2:       [======TRAIN======][TEST]
    Fold 3:             [======TRAIN======][TEST]

Each fold re-fits from scratch. Nothing carries over between folds, which
keeps the out-of-sample scores close enough to independent for the
order-statistic bounds in order_stats.py to apply.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from edgecheck.errors import require
from edgecheck.inference.signal_grid import (
    MIN_EVALUATION_BARS,
    LookbackPair,
    as_log_prices,
    evaluate_crossover,
    optimize_crossover,
)

log = logging.getLogger("edgecheck.walkforward")


@dataclass
class WalkForwardFold:
    """One train/test step."""
    train_start: int
    test_start: int
    test_bars: int
    pair: LookbackPair
    in_sample: float        # Mean per-bar return on the training window (scaled)
    out_of_sample: float    # Mean per-bar return on the test window (scaled)


@dataclass
class WalkForwardResult:
    """Out-of-sample return sample plus per-fold detail."""
    folds: list[WalkForwardFold] = field(default_factory=list)
    scale: float = 1.0

    @property
    def returns(self) -> np.ndarray:
        """The out-of-sample return sample, one entry per fold, in fold order."""
        return np.array([f.out_of_sample for f in self.folds], dtype=np.float64)

    @property
    def num_folds(self) -> int:
        return len(self.folds)

    @property
    def mean_oos(self) -> float:
        return float(np.mean(self.returns))

    @property
    def mean_is(self) -> float:
        return float(np.mean([f.in_sample for f in self.folds]))


def max_fold_count(n: int, train_size: int, test_size: int) -> int:
    """Upper bound on the number of folds: ceil((n - train) / test)."""
    return math.ceil((n - train_size) / test_size)


def walk_forward(
    prices: Sequence[float] | np.ndarray,
    max_lookback: int,
    train_size: int,
    test_size: int,
    scale: float = 1.0,
) -> WalkForwardResult:
    """
    Produce one out-of-sample return per fold.

    Fold k fits optimize_crossover() on prices[start:start+train_size],
    then trades the winning pair on the next min(test_size, remaining)
    bars. The test slice begins `long` bars before the first test
    decision so the long window is already full. The fold's score is
    the mean signed per-bar return times `scale`.

    Args:
        prices: Log prices.
        max_lookback: Largest long lookback searched in each fold.
        train_size: Bars per training window. Must exceed max_lookback by
            at least MIN_EVALUATION_BARS.
        test_size: Bars per test window (the last one may be shorter).
        scale: Multiplier applied to reported returns, e.g. 25200 to
            approximately annualize daily log returns as percent.

    Returns:
        WalkForwardResult. `.returns` is the sample for order_statistic_bounds().
    """
    require(max_lookback >= 2, f"max_lookback must be at least 2, got {max_lookback}")
    require(
        train_size - max_lookback >= MIN_EVALUATION_BARS,
        f"train_size ({train_size}) must be at least {MIN_EVALUATION_BARS} greater "
        f"than max_lookback ({max_lookback})",
    )
    require(test_size >= 1, f"test_size must be at least 1, got {test_size}")

    x = as_log_prices(prices).tolist()
    n = len(x)
    require(train_size < n, f"train_size ({train_size}) leaves no test bars in {n} prices")

    if train_size + test_size > n:
        log.warning(
            "Only %d bars follow the first training window; the single fold is shorter than test_size=%d",
            n - train_size, test_size,
        )

    result = WalkForwardResult(scale=scale)
    train_start = 0
    while True:
        fit = optimize_crossover(x[train_start:train_start + train_size], max_lookback)
        pair = fit.pair

        test_start = train_start + train_size
        test_bars = min(test_size, n - test_start)

        # Slice so that local bar long-1 is the bar just before test_start
        window = x[test_start - pair.long:test_start + test_bars]
        oos = evaluate_crossover(window, pair, pair.long - 1, pair.long - 1 + test_bars)

        fold = WalkForwardFold(
            train_start=train_start,
            test_start=test_start,
            test_bars=test_bars,
            pair=pair,
            in_sample=fit.mean_return * scale,
            out_of_sample=oos.mean_return * scale,
        )
        result.folds.append(fold)
        log.info(
            "WF fold %d: train[%d:%d] lookback=%d/%d IS=%.3f OOS=%.3f over %d bars",
            len(result.folds), train_start, test_start, pair.short, pair.long,
            fold.in_sample, fold.out_of_sample, test_bars,
        )

        train_start += test_bars
        if train_start + train_size >= n:
            break

    log.info(
        "Walk-forward complete: %d folds, mean IS=%.3f mean OOS=%.3f",
        result.num_folds, result.mean_is, result.mean_oos,
    )
    return result
