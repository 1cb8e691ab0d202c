"""
Statistical inference for a lookback-optimized crossover system.

- Lookback grid search with a shared incremental evaluator
- Walk-forward out-of-sample return sample
- Monte-Carlo permutation test with training-bias decomposition
- Distribution-free order-statistic bounds on future returns

Everything runs on one in-memory log-price series, serially and
deterministically (the permutation test is reproducible from its seed).
"""

from edgecheck.inference.order_stats import (
    Bound,
    BoundsReport,
    order_statistic_bounds,
    orderstat_tail,
    quantile_conf,
)
from edgecheck.inference.permutation import (
    PermutationResult,
    Replication,
    permutation_test,
    permute_prices,
    permute_span,
)
from edgecheck.inference.rng import PseudoRandomSource
from edgecheck.inference.signal_grid import (
    GridFit,
    LookbackPair,
    Position,
    crossover_rule,
    evaluate_crossover,
    optimize_crossover,
)
from edgecheck.inference.walk_forward import WalkForwardFold, WalkForwardResult, walk_forward

__all__ = [
    "Bound",
    "BoundsReport",
    "GridFit",
    "LookbackPair",
    "PermutationResult",
    "Position",
    "PseudoRandomSource",
    "Replication",
    "WalkForwardFold",
    "WalkForwardResult",
    "crossover_rule",
    "evaluate_crossover",
    "optimize_crossover",
    "order_statistic_bounds",
    "orderstat_tail",
    "permutation_test",
    "permute_prices",
    "permute_span",
    "quantile_conf",
    "walk_forward",
]
