"""
Unit tests for order-statistic return bounds.
"""

import numpy as np
import pytest

from edgecheck.errors import PreconditionViolation
from edgecheck.inference.order_stats import (
    bound_rank,
    order_statistic_bounds,
    orderstat_tail,
    quantile_conf,
)


SAMPLE = [3.0, -0.4, 2.2, -2.1, 0.9, 1.5, 0.3]


class TestOrderstatTail:
    """The binomial survival function."""

    def test_m_equals_one(self):
        n, q = 5, 0.2
        assert orderstat_tail(n, q, 1) == pytest.approx(1.0 - (1.0 - q) ** n)

    def test_m_equals_n(self):
        n, q = 6, 0.7
        assert orderstat_tail(n, q, n) == pytest.approx(q ** n)

    def test_explicit_sum(self):
        from math import comb

        n, q, m = 12, 0.3, 4
        expected = sum(comb(n, k) * q ** k * (1 - q) ** (n - k) for k in range(m, n + 1))
        assert orderstat_tail(n, q, m) == pytest.approx(expected)

    def test_endpoints(self):
        assert orderstat_tail(10, 0.0, 1) == pytest.approx(0.0, abs=1e-15)
        assert orderstat_tail(10, 1.0, 10) == pytest.approx(1.0)

    def test_monotone_in_q(self):
        rng = np.random.default_rng(0)
        qs = np.linspace(0.0, 1.0, 101)
        for _ in range(40):
            n = int(rng.integers(1, 200))
            m = int(rng.integers(1, n + 1))
            values = [orderstat_tail(n, q, m) for q in qs]
            assert all(b >= a - 1e-12 for a, b in zip(values, values[1:]))

    @pytest.mark.parametrize("n,q,m", [(0, 0.5, 1), (5, 0.5, 0), (5, 0.5, 6), (5, -0.1, 1), (5, 1.1, 1)])
    def test_invalid_arguments(self, n, q, m):
        with pytest.raises(PreconditionViolation):
            orderstat_tail(n, q, m)


class TestQuantileConf:
    """Inverting the tail in q."""

    def test_inverts_tail(self):
        rng = np.random.default_rng(1)
        for _ in range(40):
            n = int(rng.integers(1, 300))
            m = int(rng.integers(1, n + 1))
            conf = float(rng.uniform(0.01, 0.99))
            q = quantile_conf(n, m, conf)
            assert 0.0 < q < 1.0
            assert orderstat_tail(n, q, m) == pytest.approx(conf, abs=1e-6)

    def test_closed_form_m_equals_one(self):
        # 1 - (1-q)^n = conf  =>  q = 1 - (1-conf)^(1/n)
        n, conf = 20, 0.4
        assert quantile_conf(n, 1, conf) == pytest.approx(1.0 - (1.0 - conf) ** (1.0 / n), abs=1e-8)

    def test_increasing_in_conf(self):
        assert quantile_conf(50, 5, 0.05) < quantile_conf(50, 5, 0.5) < quantile_conf(50, 5, 0.95)

    @pytest.mark.parametrize("conf", [0.0, 1.0, -0.2, 1.5])
    def test_conf_must_be_interior(self, conf):
        with pytest.raises(PreconditionViolation):
            quantile_conf(10, 2, conf)


class TestBounds:
    """order_statistic_bounds end to end."""

    def test_seven_return_example(self):
        report = order_statistic_bounds(SAMPLE, lower_fail_rate=0.2, upper_fail_rate=0.2, p_of_q=0.05)
        assert report.n == 7
        assert report.lower.rank == 1
        assert report.upper.rank == 1
        assert report.lower.value == -2.1
        assert report.upper.value == 3.0

    def test_ranks(self):
        assert bound_rank(0.1, 20) == 2     # floor(2.1)
        assert bound_rank(0.4, 20) == 8     # floor(8.4)
        assert bound_rank(0.01, 20) == 1    # floor(0.21) clamped up

    def test_interior_order_statistics(self):
        returns = np.arange(1.0, 21.0)  # 1..20
        report = order_statistic_bounds(returns, lower_fail_rate=0.1, upper_fail_rate=0.4, p_of_q=0.05)
        assert report.lower.value == 2.0    # 2nd smallest
        assert report.upper.value == 13.0   # 8th largest

    def test_input_not_modified(self):
        returns = list(SAMPLE)
        order_statistic_bounds(returns, 0.2, 0.2, 0.05)
        assert returns == SAMPLE

    def test_sorted_sample_and_mean(self):
        report = order_statistic_bounds(SAMPLE, 0.2, 0.2, 0.05)
        np.testing.assert_array_equal(report.sorted_returns, np.sort(SAMPLE))
        assert report.mean == pytest.approx(np.mean(SAMPLE))

    def test_confidence_figures(self):
        n = 40
        returns = np.random.default_rng(2).normal(size=n)
        report = order_statistic_bounds(returns, lower_fail_rate=0.1, upper_fail_rate=0.3, p_of_q=0.05)

        lower = report.lower
        assert lower.optimistic_q == pytest.approx(0.09)
        assert lower.pessimistic_q == pytest.approx(0.11)
        assert lower.optimistic_prob == pytest.approx(1.0 - orderstat_tail(n, 0.09, lower.rank))
        assert lower.pessimistic_prob == pytest.approx(orderstat_tail(n, 0.11, lower.rank))
        assert lower.p_of_q_optimistic_q == pytest.approx(quantile_conf(n, lower.rank, 0.95))
        assert lower.p_of_q_pessimistic_q == pytest.approx(quantile_conf(n, lower.rank, 0.05))
        assert lower.p_of_q_pessimistic_q < lower.p_of_q_optimistic_q

        upper = report.upper
        assert upper.rank == bound_rank(0.3, n)
        assert upper.optimistic_q == pytest.approx(0.27)
        assert upper.pessimistic_q == pytest.approx(0.33)
        for prob in (lower.optimistic_prob, lower.pessimistic_prob, upper.optimistic_prob, upper.pessimistic_prob):
            assert 0.0 <= prob <= 1.0

    def test_custom_multipliers(self):
        report = order_statistic_bounds(
            SAMPLE, 0.2, 0.2, 0.05, optimistic_multiplier=0.5, pessimistic_multiplier=2.0,
        )
        assert report.lower.optimistic_q == pytest.approx(0.1)
        assert report.lower.pessimistic_q == pytest.approx(0.4)

    def test_pessimistic_rate_clamped(self):
        report = order_statistic_bounds(SAMPLE, 0.2, 0.95, 0.05)
        assert report.upper.pessimistic_q == 1.0
        assert report.upper.pessimistic_prob == pytest.approx(1.0)

    def test_single_return(self):
        report = order_statistic_bounds([0.7], 0.1, 0.4, 0.05)
        assert report.lower.value == report.upper.value == 0.7

    def test_empty_sample_rejected(self):
        with pytest.raises(PreconditionViolation):
            order_statistic_bounds([], 0.1, 0.4, 0.05)

    @pytest.mark.parametrize("lo,hi,p", [(0.0, 0.4, 0.05), (0.1, 1.0, 0.05), (0.1, 0.4, 0.0), (0.1, 0.4, 1.0)])
    def test_rates_must_be_interior(self, lo, hi, p):
        with pytest.raises(PreconditionViolation):
            order_statistic_bounds(SAMPLE, lo, hi, p)
