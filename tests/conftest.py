"""
Shared fixtures for the inference tests.
"""

import numpy as np
import pytest

from edgecheck.config import get_settings
from edgecheck.data import synthetic_log_prices


@pytest.fixture
def random_walk():
    """300 bars of a seeded Gaussian log-price random walk."""
    return synthetic_log_prices(300, drift=0.0005, vol=0.01, seed=7).values


@pytest.fixture
def cyclical_prices():
    """A smooth 50-bar cycle: easy money for a crossover, none once shuffled."""
    i = np.arange(300)
    return np.log(100.0) + 0.3 * np.sin(2 * np.pi * i / 50)


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
