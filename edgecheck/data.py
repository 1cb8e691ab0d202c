"""
Price history for the inference engine.

Two sources:
  1. Market file: one record per line, "YYYYMMDD price", where the price
     may be separated from the date by spaces, tabs or commas. Anything
     after the price (e.g. extra OHLC columns) is ignored.
  2. Synthetic random walk (seeded), for demos and tests.

Both return a pd.Series of *log* prices indexed by date.

A malformed file fails the whole run with MarketDataError. Records are
never skipped: every statistic downstream assumes a clean, complete,
strictly increasing series.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import numpy as np
import pandas as pd

from edgecheck.errors import MarketDataError, require

log = logging.getLogger("edgecheck.data")

_DATE_RE = re.compile(r"^\d{8}")
_DELIMS = " \t,"


def _parse_line(line: str, lineno: int, path: Path) -> tuple[pd.Timestamp, float]:
    if not _DATE_RE.match(line):
        raise MarketDataError(f"Invalid date reading line {lineno} of file {path}")
    try:
        date = pd.Timestamp(pd.to_datetime(line[:8], format="%Y%m%d"))
    except ValueError as exc:
        raise MarketDataError(f"Invalid date reading line {lineno} of file {path}") from exc

    fields = line[8:].strip(_DELIMS)
    token = re.split(r"[ \t,]+", fields, maxsplit=1)[0] if fields else ""
    try:
        price = float(token)
    except ValueError as exc:
        raise MarketDataError(f"Invalid price reading line {lineno} of file {path}") from exc
    if not np.isfinite(price) or price <= 0.0:
        raise MarketDataError(f"Non-positive price {token!r} on line {lineno} of file {path}")
    return date, price


def load_price_file(path: str | Path) -> pd.Series:
    """
    Read a market history file and return log prices indexed by date.

    Reading stops at the first blank line, so trailing padding is harmless.

    Raises:
        MarketDataError: the file is missing, empty, malformed, or its
            dates are not strictly increasing.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise MarketDataError(f"Cannot open market history file {path}")

    dates: list[pd.Timestamp] = []
    prices: list[float] = []
    with open(path, "rt", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.rstrip("\r\n")
            if len(line.strip()) < 2:
                break
            date, price = _parse_line(line, lineno, path)
            if dates and date <= dates[-1]:
                raise MarketDataError(
                    f"Date {date.date()} on line {lineno} of file {path} does not follow {dates[-1].date()}"
                )
            dates.append(date)
            prices.append(price)

    if not prices:
        raise MarketDataError(f"No prices found in market history file {path}")

    log.info("Read %d prices from %s (%s to %s)", len(prices), path.name, dates[0].date(), dates[-1].date())
    return pd.Series(np.log(prices), index=pd.DatetimeIndex(dates), name="log_price")


def synthetic_log_prices(
    n: int,
    drift: float = 0.0003,
    vol: float = 0.01,
    start_price: float = 100.0,
    seed: int = 42,
) -> pd.Series:
    """
    Gaussian random walk in log space on a business-day index.

    drift and vol are per bar. With no serial dependence, a crossover
    system has no genuine edge here: useful as a null case.
    """
    require(n >= 2, f"a synthetic series needs at least 2 bars, got {n}")
    rng = np.random.default_rng(seed)
    steps = rng.normal(drift, vol, size=n - 1)
    log_prices = np.log(start_price) + np.concatenate(([0.0], np.cumsum(steps)))
    dates = pd.bdate_range(start="2000-01-03", periods=n)
    return pd.Series(log_prices, index=dates, name="log_price")
