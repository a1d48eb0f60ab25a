"""
Sample Data - Synthetic per-second price and market-cap series.

Used when no dataset file is available. Each second opens at the previous
close, and high/low are drawn within a small band around the open so every
bar satisfies the OHLC invariants.
"""

from typing import Optional

import numpy as np
import pandas as pd

from ..core.constants import SAMPLE_BASE_PRICE, SAMPLE_NOW, SAMPLE_SECONDS, SAMPLE_SUPPLY
from ..core.types import Series, SeriesMetadata


def _random_walk(
    rng: np.random.Generator,
    times: np.ndarray,
    start_value: float,
    band: float,
    volume: np.ndarray
) -> pd.DataFrame:
    n = len(times)
    opens = np.empty(n)
    highs = np.empty(n)
    lows = np.empty(n)
    closes = np.empty(n)

    up = rng.random(n) * band
    down = rng.random(n) * band
    pick = rng.random(n)

    value = start_value
    for i in range(n):
        opens[i] = value
        highs[i] = value * (1 + up[i])
        lows[i] = value * (1 - down[i])
        closes[i] = min(highs[i], lows[i] + pick[i] * (highs[i] - lows[i]))
        value = closes[i]

    return pd.DataFrame({
        'time': times,
        'open': opens,
        'high': highs,
        'low': lows,
        'close': closes,
        'volume': volume,
    })


def generate_sample_series(
    seconds: int = SAMPLE_SECONDS,
    now: int = SAMPLE_NOW,
    base_price: float = SAMPLE_BASE_PRICE,
    supply: float = SAMPLE_SUPPLY,
    seed: Optional[int] = None
) -> Series:
    """
    Generate a synthetic series of ``seconds`` bars ending at ``now``.

    Args:
        seconds: Number of per-second bars
        now: Time of the last bar (unix seconds)
        base_price: Opening price of the first bar
        supply: Multiplier from price to market cap for the first bar
        seed: Random seed for reproducible data

    Returns:
        Series with price and market-cap frames sharing one time domain
    """
    if seconds < 1:
        raise ValueError(f"seconds must be >= 1, got {seconds}")

    rng = np.random.default_rng(seed)
    times = np.arange(now - seconds + 1, now + 1, dtype=np.int64)
    volume = rng.integers(100, 1100, size=seconds, dtype=np.int64)

    price = _random_walk(rng, times, base_price, 0.001, volume)
    market_cap = _random_walk(rng, times, base_price * supply, 0.0005, volume)

    return Series(
        price,
        market_cap,
        SeriesMetadata(start_time=int(times[0]), end_time=int(times[-1]))
    )
