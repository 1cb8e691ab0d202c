#!/usr/bin/env python3
"""
Command-line runner.

Two studies on one market file (YYYYMMDD price per line):

    bounds  Walk-forward the crossover system, then bound future returns
    mcpt    Permutation-test the optimized system and estimate training bias

Usage:
    python -m edgecheck.run bounds prices.txt --max-lookback 100 --train 1000 --test 63
    python -m edgecheck.run mcpt prices.txt --max-lookback 300 --reps 1000
    python -m edgecheck.run mcpt --synthetic 2000

Defaults come from edgecheck.config (EDGECHECK_* environment variables).
"""

from __future__ import annotations

import argparse
import logging
import sys

import pandas as pd
from pydantic import ValidationError

from edgecheck.config import Settings, get_settings
from edgecheck.data import load_price_file, synthetic_log_prices
from edgecheck.errors import EdgecheckError
from edgecheck.inference.order_stats import Bound, order_statistic_bounds
from edgecheck.inference.permutation import permutation_test
from edgecheck.inference.rng import PseudoRandomSource
from edgecheck.inference.walk_forward import walk_forward

log = logging.getLogger("edgecheck")

LOG_FORMAT = "%(asctime)s %(name)-22s %(levelname)-7s %(message)s"


def _load(args: argparse.Namespace) -> pd.Series:
    if args.synthetic:
        return synthetic_log_prices(args.synthetic, seed=args.synthetic_seed)
    if not args.filename:
        raise EdgecheckError("a market file or --synthetic N is required")
    return load_price_file(args.filename)


def _print_bound(bound: Bound, side: str, p_of_q: float) -> None:
    beyond = "less than" if side == "LOWER" else "greater than"
    too_loose = "too low" if side == "LOWER" else "too high"
    too_tight = "too high" if side == "LOWER" else "too low"

    print(f"\nThe {side} bound on future returns is {bound.value:.3f}")
    print(f"It has an expected user-specified failure rate of {100 * bound.fail_rate:.2f} %")
    print(f"  (This is the percent of future returns {beyond} the {side.lower()} bound.)")

    print(f"\nWe may take an optimistic view: the {side.lower()} bound is {too_loose}.")
    print(f"The probability is {bound.optimistic_prob:.4f} that the true failure rate "
          f"is {100 * bound.optimistic_q:.2f} % or less")
    print(f"The probability is {p_of_q:.4f} that the true failure rate "
          f"is {100 * bound.p_of_q_optimistic_q:.2f} % or less")

    print(f"\nWe may take a pessimistic view: the {side.lower()} bound is {too_tight}.")
    print(f"The probability is {bound.pessimistic_prob:.4f} that the true failure rate "
          f"is {100 * bound.pessimistic_q:.2f} % or more")
    print(f"The probability is {p_of_q:.4f} that the true failure rate "
          f"is {100 * bound.p_of_q_pessimistic_q:.2f} % or more")


def run_bounds(args: argparse.Namespace, settings: Settings) -> None:
    prices = _load(args)
    wf = walk_forward(
        prices.values,
        max_lookback=args.max_lookback,
        train_size=args.train,
        test_size=args.test,
        scale=settings.annualization,
    )

    print("\n--- Walk-Forward Folds ---")
    for fold in wf.folds:
        print(f"IS = {fold.in_sample:8.3f} at {fold.train_start:5d}  "
              f"Lookback={fold.pair.short} {fold.pair.long}   "
              f"OOS = {fold.out_of_sample:8.3f} at {fold.test_start}")
    print(f"\nAll returns are approximately annualized by multiplying by {settings.annualization:g}")
    print(f"mean OOS = {wf.mean_oos:.3f} with {wf.num_folds} returns")

    report = order_statistic_bounds(
        wf.returns,
        lower_fail_rate=args.lower_fail,
        upper_fail_rate=args.upper_fail,
        p_of_q=args.p_of_q,
        optimistic_multiplier=settings.optimistic_multiplier,
        pessimistic_multiplier=settings.pessimistic_multiplier,
    )
    _print_bound(report.lower, "LOWER", report.p_of_q)
    _print_bound(report.upper, "UPPER", report.p_of_q)


def run_mcpt(args: argparse.Namespace, settings: Settings) -> None:
    prices = _load(args)
    result = permutation_test(
        prices.values,
        max_lookback=args.max_lookback,
        replications=args.reps,
        rng=PseudoRandomSource(),
        seed=args.seed,
    )

    print(f"\n{len(prices)} prices were read, {result.replications} MCP replications "
          f"with max lookback = {args.max_lookback}\n")
    labels = {
        "p_value": "p-value for null hypothesis that system is worthless",
        "total_trend": "Total trend",
        "original_nshort": "Original nshort",
        "original_nlong": "Original nlong",
        "original_return": "Original return",
        "trend_component": "Trend component",
        "training_bias": "Training bias",
        "skill": "Skill",
        "unbiased_return": "Unbiased return",
    }
    summary = result.summary()
    for key, label in labels.items():
        print(f"{label} = {summary[key]}")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Overfitting-aware evaluation of a crossover system")
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("filename", nargs="?", help="Market file (YYYYMMDD Price)")
    common.add_argument("--max-lookback", type=int, default=settings.max_lookback,
                        help="Maximum moving-average lookback")
    common.add_argument("--synthetic", type=int, default=0, metavar="N",
                        help="Use N bars of a synthetic random walk instead of a file")
    common.add_argument("--synthetic-seed", type=int, default=42, help="Seed for --synthetic")

    b = sub.add_parser("bounds", parents=[common], help="Walk-forward return bounds")
    b.add_argument("--train", type=int, default=settings.train_size,
                   help="Bars in training set (much greater than max lookback)")
    b.add_argument("--test", type=int, default=settings.test_size, help="Bars in test set")
    b.add_argument("--lower-fail", type=float, default=settings.lower_fail_rate,
                   help="Lower bound failure rate (often 0.01-0.1)")
    b.add_argument("--upper-fail", type=float, default=settings.upper_fail_rate,
                   help="Upper bound failure rate (often 0.1-0.5)")
    b.add_argument("--p-of-q", type=float, default=settings.p_of_q,
                   help="Probability of bad bound (often 0.01-0.1)")
    b.set_defaults(func=run_bounds)

    m = sub.add_parser("mcpt", parents=[common], help="Monte-Carlo permutation test")
    m.add_argument("--reps", type=int, default=settings.replications,
                   help="Number of MCPT replications (hundreds or thousands)")
    m.add_argument("--seed", type=int, default=settings.seed, help="Generator seed")
    m.set_defaults(func=run_mcpt)

    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(format=LOG_FORMAT, datefmt="%H:%M:%S")
        log.error("Invalid EDGECHECK_* setting: %s", exc)
        return 1
    logging.basicConfig(level=getattr(logging, settings.log_level), format=LOG_FORMAT, datefmt="%H:%M:%S")

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    try:
        args.func(args, settings)
    except EdgecheckError as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
