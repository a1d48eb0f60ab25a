"""
Shared pytest fixtures.
"""

import numpy as np
import pytest

from candle_engine.core.types import Bar
from candle_engine.data.sample_data import generate_sample_series


SAMPLE_NOW = 1756909000


def _random_seconds(n: int, start: int = 0, base_price: float = 1.0, seed: int = 7):
    """Create a time-ascending run of valid 1-second bars."""
    rng = np.random.default_rng(seed)
    bars = []
    price = base_price
    for i in range(n):
        o = price
        c = o * (1 + rng.uniform(-0.01, 0.01))
        h = max(o, c) * (1 + rng.uniform(0, 0.005))
        l = min(o, c) * (1 - rng.uniform(0, 0.005))
        v = int(rng.integers(0, 100))
        bars.append(Bar(time=start + i, open=o, high=h, low=l, close=c, volume=v))
        price = c
    return bars


@pytest.fixture
def make_seconds():
    """Factory for synthetic 1-second bars: make_seconds(n, start=0, seed=7)."""
    return _random_seconds


@pytest.fixture
def sample_series():
    """Ten minutes of seeded sample data ending at SAMPLE_NOW."""
    return generate_sample_series(seconds=600, now=SAMPLE_NOW, seed=42)


@pytest.fixture
def long_series():
    """Two hours of seeded sample data ending at SAMPLE_NOW."""
    return generate_sample_series(seconds=7200, now=SAMPLE_NOW, seed=7)
