"""
Bucket Aggregator - Resample per-second bars into coarser timeframes.

Bucket key is ``floor(time / bar_seconds) * bar_seconds``. Within a bucket:
open is the first assigned bar's open, high the max, low the min, close the
last assigned bar's close (input order) and volume the sum. Output is sorted
ascending by bucket time.

The DataFrame path is the only implementation; the Bar-list entry point
converts in and out of it.
"""

from typing import List, Sequence

import pandas as pd

from ..core.types import Bar, BAR_COLUMNS, empty_frame
from ..core.exceptions import InvalidParametersError


def _check_bar_seconds(bar_seconds: int) -> None:
    if isinstance(bar_seconds, bool) or not isinstance(bar_seconds, int) or bar_seconds <= 0:
        raise InvalidParametersError(
            "bar_seconds must be a positive integer",
            bar_seconds=bar_seconds
        )


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Convert bars to a DataFrame with BAR_COLUMNS, preserving order."""
    if not bars:
        return empty_frame()

    frame = pd.DataFrame({
        'time': [b.time for b in bars],
        'open': [b.open for b in bars],
        'high': [b.high for b in bars],
        'low': [b.low for b in bars],
        'close': [b.close for b in bars],
        'volume': [b.volume for b in bars],
    })
    return frame.astype({'time': 'int64', 'volume': 'int64'})


def frame_to_bars(frame: pd.DataFrame) -> List[Bar]:
    """Convert a BAR_COLUMNS DataFrame to a list of bars, preserving order."""
    return [
        Bar(
            time=row.time,
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume
        )
        for row in frame[BAR_COLUMNS].itertuples(index=False)
    ]


def aggregate_frame(frame: pd.DataFrame, bar_seconds: int) -> pd.DataFrame:
    """
    Aggregate a per-second bar DataFrame into ``bar_seconds`` buckets.

    Args:
        frame: Bars with columns time, open, high, low, close, volume
        bar_seconds: Bucket width in seconds (> 0)

    Returns:
        DataFrame with the same columns, one row per bucket, ascending time.
        ``frame`` itself is returned when ``bar_seconds`` is 1.
    """
    _check_bar_seconds(bar_seconds)

    if bar_seconds == 1:
        return frame
    if frame.empty:
        return empty_frame()

    # Floor division on int64 is arithmetic flooring, so unaligned and
    # negative timestamps bucket correctly.
    bucket = (frame['time'] // bar_seconds) * bar_seconds

    grouped = frame.groupby(bucket.rename('bucket'), sort=True)
    out = grouped.agg(
        open=('open', 'first'),
        high=('high', 'max'),
        low=('low', 'min'),
        close=('close', 'last'),
        volume=('volume', 'sum'),
    )
    out = out.reset_index().rename(columns={'bucket': 'time'})

    return out[BAR_COLUMNS].astype({'time': 'int64', 'volume': 'int64'})


def aggregate(bars: Sequence[Bar], bar_seconds: int) -> List[Bar]:
    """
    Aggregate per-second bars into ``bar_seconds`` bars.

    Pure and deterministic. ``aggregate(bars, 1)`` returns ``bars`` itself;
    an empty input yields an empty list.

    Args:
        bars: Time-ascending 1-second bars
        bar_seconds: Target bar duration in seconds (> 0)

    Returns:
        Aggregated bars sorted ascending by time
    """
    _check_bar_seconds(bar_seconds)

    if bar_seconds == 1:
        return bars
    if not bars:
        return []

    return frame_to_bars(aggregate_frame(bars_to_frame(bars), bar_seconds))
