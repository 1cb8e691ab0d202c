"""
Distribution-free bounds on future returns from order statistics.

Given n out-of-sample returns, the m-th smallest is an estimate of the
m/(n+1) quantile of the return distribution, whatever that distribution
is. We use it two ways:

- Lower bound: the m_lo-th smallest return, m_lo = floor(p_lo * (n+1)).
  About p_lo of future returns should fall below it.
- Upper bound: the m_hi-th largest return, m_hi = floor(p_hi * (n+1)).
  About p_hi of future returns should land above it.

How far can the true failure rate stray from the nominal one? For any
continuous distribution, the number of draws at or below its q-quantile
is Binomial(n, q). So the chance that at least m of n draws fall below the
q-quantile (the m-th order statistic sits at or below it) is

    orderstat_tail(n, q, m) = sum_{k=m}^{n} C(n,k) q^k (1-q)^(n-k)

Each bound gets:
- optimistic probability    1 - orderstat_tail(n, 0.9 * rate, m)
  (true failure rate is 0.9x nominal or better)
- pessimistic probability   orderstat_tail(n, 1.1 * rate, m)
  (true failure rate is 1.1x nominal or worse)
- quantile_conf brackets: the failure rates that are beaten / exceeded
  with a user-chosen probability p_of_q.

The 0.9 and 1.1 multipliers are an arbitrary reporting policy, not a
statistical constant; they are arguments here and settings in config.py.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import stats as scipy_stats
from scipy.optimize import brentq

from edgecheck.errors import require

log = logging.getLogger("edgecheck.bounds")

QUANTILE_TOL = 1e-9


def orderstat_tail(n: int, q: float, m: int) -> float:
    """
    P(at least m of n i.i.d. draws fall at or below the q-quantile).

    Binomial survival function: P(X >= m) for X ~ Binomial(n, q).
    Monotone non-decreasing in q.
    """
    require(n >= 1, f"n must be at least 1, got {n}")
    require(1 <= m <= n, f"order statistic rank m={m} must lie in [1, {n}]")
    require(0.0 <= q <= 1.0, f"q must lie in [0, 1], got {q}")
    return float(scipy_stats.binom.sf(m - 1, n, q))


def quantile_conf(n: int, m: int, conf: float, tol: float = QUANTILE_TOL) -> float:
    """
    Invert orderstat_tail in q: find q with orderstat_tail(n, q, m) == conf.

    orderstat_tail is 0 at q=0 and 1 at q=1 (for 1 <= m <= n), so the root
    is bracketed on [0, 1] for any conf strictly inside (0, 1).
    """
    require(n >= 1, f"n must be at least 1, got {n}")
    require(1 <= m <= n, f"order statistic rank m={m} must lie in [1, {n}]")
    require(0.0 < conf < 1.0, f"conf must lie strictly between 0 and 1, got {conf}")

    def gap(q: float) -> float:
        return orderstat_tail(n, q, m) - conf

    lo, hi = 0.0, 1.0
    if gap(lo) >= 0.0:
        log.warning("quantile_conf(n=%d, m=%d, conf=%g) root sits at q=0", n, m, conf)
        return lo
    if gap(hi) <= 0.0:
        log.warning("quantile_conf(n=%d, m=%d, conf=%g) root sits at q=1", n, m, conf)
        return hi
    return float(brentq(gap, lo, hi, xtol=tol))


@dataclass
class Bound:
    """One side of the return bounds, with its reliability figures."""
    value: float
    fail_rate: float          # Nominal fraction of future returns beyond the bound
    rank: int                 # m: order statistic rank from the relevant tail
    optimistic_q: float
    optimistic_prob: float    # P(true failure rate <= optimistic_q)
    pessimistic_q: float
    pessimistic_prob: float   # P(true failure rate >= pessimistic_q)
    p_of_q_optimistic_q: float  # With prob p_of_q the true rate is this or less
    p_of_q_pessimistic_q: float  # With prob p_of_q the true rate is this or more


@dataclass
class BoundsReport:
    """Lower and upper bounds on future returns."""
    lower: Bound
    upper: Bound
    n: int
    p_of_q: float
    mean: float
    sorted_returns: np.ndarray

    def summary(self) -> dict:
        """Return a clean summary dict for display."""
        return {
            "n_returns": self.n,
            "mean": f"{self.mean:.3f}",
            "lower_bound": f"{self.lower.value:.3f}",
            "lower_fail_rate": f"{100 * self.lower.fail_rate:.2f}%",
            "upper_bound": f"{self.upper.value:.3f}",
            "upper_fail_rate": f"{100 * self.upper.fail_rate:.2f}%",
        }


def bound_rank(fail_rate: float, n: int) -> int:
    """Order statistic rank m = max(1, floor(fail_rate * (n + 1)))."""
    return max(1, int(math.floor(fail_rate * (n + 1))))


def _assess_bound(
    value: float,
    fail_rate: float,
    rank: int,
    n: int,
    p_of_q: float,
    optimistic_multiplier: float,
    pessimistic_multiplier: float,
) -> Bound:
    opt_q = optimistic_multiplier * fail_rate
    pes_q = pessimistic_multiplier * fail_rate
    if pes_q > 1.0:
        log.warning("Pessimistic failure rate %.4f exceeds 1; clamping", pes_q)
        pes_q = 1.0

    return Bound(
        value=value,
        fail_rate=fail_rate,
        rank=rank,
        optimistic_q=opt_q,
        optimistic_prob=1.0 - orderstat_tail(n, opt_q, rank),
        pessimistic_q=pes_q,
        pessimistic_prob=orderstat_tail(n, pes_q, rank),
        p_of_q_optimistic_q=quantile_conf(n, rank, 1.0 - p_of_q),
        p_of_q_pessimistic_q=quantile_conf(n, rank, p_of_q),
    )


def order_statistic_bounds(
    returns: Sequence[float] | np.ndarray,
    lower_fail_rate: float,
    upper_fail_rate: float,
    p_of_q: float,
    optimistic_multiplier: float = 0.9,
    pessimistic_multiplier: float = 1.1,
) -> BoundsReport:
    """
    Bound future returns from a sample of (roughly independent) returns.

    Args:
        returns: The sample, e.g. WalkForwardResult.returns. Not modified.
        lower_fail_rate: Desired fraction of future returns below the lower bound.
        upper_fail_rate: Desired fraction of future returns above the upper bound.
        p_of_q: Probability used for the quantile-confidence brackets.
        optimistic_multiplier: Scales the nominal rate for the optimistic view.
        pessimistic_multiplier: Scales the nominal rate for the pessimistic view.

    Returns:
        BoundsReport with both bounds and their confidence figures.
    """
    arr = np.asarray(returns, dtype=np.float64)
    require(arr.ndim == 1, f"returns must be one-dimensional, got shape {arr.shape}")
    require(arr.size > 0, "cannot bound an empty return sample")
    require(0.0 < lower_fail_rate < 1.0, f"lower_fail_rate must be in (0, 1), got {lower_fail_rate}")
    require(0.0 < upper_fail_rate < 1.0, f"upper_fail_rate must be in (0, 1), got {upper_fail_rate}")
    require(0.0 < p_of_q < 1.0, f"p_of_q must be in (0, 1), got {p_of_q}")

    ordered = np.sort(arr)
    n = len(ordered)

    m_lo = bound_rank(lower_fail_rate, n)
    m_hi = bound_rank(upper_fail_rate, n)

    lower = _assess_bound(
        float(ordered[m_lo - 1]), lower_fail_rate, m_lo, n, p_of_q,
        optimistic_multiplier, pessimistic_multiplier,
    )
    upper = _assess_bound(
        float(ordered[n - m_hi]), upper_fail_rate, m_hi, n, p_of_q,
        optimistic_multiplier, pessimistic_multiplier,
    )

    log.info(
        "Bounds from %d returns: lower=%.3f (m=%d, %.1f%%) upper=%.3f (m=%d, %.1f%%)",
        n, lower.value, m_lo, 100 * lower_fail_rate, upper.value, m_hi, 100 * upper_fail_rate,
    )
    return BoundsReport(
        lower=lower,
        upper=upper,
        n=n,
        p_of_q=p_of_q,
        mean=float(np.mean(ordered)),
        sorted_returns=ordered,
    )
