"""Core data types for the candle engine.

This module defines the fundamental data structures shared by the aggregator,
the query path and the backfill controller:
- Bar: one validated OHLCV period (unix-second start time)
- Series: the immutable per-second price / market-cap pair
- Query: the full cache key of a range query
- ClampedRange: the output of the range guard
- BackfillState: the mutable state owned by one chart session
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .constants import BackfillPhase, SeriesType, Timeframe
from .exceptions import DataError, InvalidBarError


BAR_COLUMNS = ["time", "open", "high", "low", "close", "volume"]
"""Column order of every bar DataFrame in the engine."""


# ============================================================================
# Market Data Types
# ============================================================================

@dataclass(frozen=True)
class Bar:
    """
    OHLCV candlestick bar.

    Validates OHLC integrity on creation. ``time`` is the bucket-aligned
    start of the period in unix seconds.
    """
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def __post_init__(self):
        """Normalise numeric types and validate bar integrity."""
        object.__setattr__(self, 'time', int(self.time))
        object.__setattr__(self, 'open', float(self.open))
        object.__setattr__(self, 'high', float(self.high))
        object.__setattr__(self, 'low', float(self.low))
        object.__setattr__(self, 'close', float(self.close))
        object.__setattr__(self, 'volume', int(self.volume))

        # Prices must be strictly positive (also rejects NaN)
        if not all(p > 0 for p in (self.open, self.high, self.low, self.close)):
            raise InvalidBarError(
                "Invalid bar: prices must be > 0",
                time=self.time
            )

        # High must be >= max(open, close)
        if self.high < max(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: high ({self.high}) < max(open, close)",
                time=self.time
            )

        # Low must be <= min(open, close)
        if self.low > min(self.open, self.close):
            raise InvalidBarError(
                f"Invalid bar: low ({self.low}) > min(open, close)",
                time=self.time
            )

        if self.volume < 0:
            raise InvalidBarError(
                f"Invalid bar: volume ({self.volume}) < 0",
                time=self.time
            )

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "Bar":
        """Build a bar from a ``{time, open, high, low, close, volume}`` mapping."""
        return cls(
            time=row['time'],
            open=row['open'],
            high=row['high'],
            low=row['low'],
            close=row['close'],
            volume=row.get('volume', 0)
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation."""
        return {
            'time': self.time,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
        }


@dataclass(frozen=True)
class SeriesMetadata:
    """Time bounds of a loaded base series (inclusive, unix seconds)."""
    start_time: int
    end_time: int

    def to_dict(self) -> Dict[str, int]:
        return {'startTime': self.start_time, 'endTime': self.end_time}


def empty_frame() -> pd.DataFrame:
    """Empty bar DataFrame with the engine's column dtypes."""
    return pd.DataFrame({
        'time': pd.Series(dtype='int64'),
        'open': pd.Series(dtype='float64'),
        'high': pd.Series(dtype='float64'),
        'low': pd.Series(dtype='float64'),
        'close': pd.Series(dtype='float64'),
        'volume': pd.Series(dtype='int64'),
    })


def normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Return ``frame`` restricted to BAR_COLUMNS with the engine's dtypes."""
    missing = set(BAR_COLUMNS) - set(frame.columns)
    if 'volume' in missing:
        frame = frame.assign(volume=0)
        missing.discard('volume')
    if missing:
        raise DataError(f"Bar frame missing columns: {sorted(missing)}")

    out = frame[BAR_COLUMNS].astype({
        'time': 'int64',
        'open': 'float64',
        'high': 'float64',
        'low': 'float64',
        'close': 'float64',
        'volume': 'int64',
    })
    return out.reset_index(drop=True)


class Series:
    """
    Immutable per-second base series for one dataset.

    Holds the price and market-cap sequences as pandas DataFrames sharing one
    time domain. Bar objects are materialised lazily, once per series type.
    Consumers must treat both the frames and the bar lists as read-only.
    """

    def __init__(
        self,
        price: pd.DataFrame,
        market_cap: pd.DataFrame,
        metadata: Optional[SeriesMetadata] = None
    ):
        """
        Initialize series.

        Args:
            price: Price bars (columns time, open, high, low, close, volume)
            market_cap: Market-cap bars with the same columns
            metadata: Dataset bounds; derived from the price bars if omitted
        """
        self._frames: Dict[SeriesType, pd.DataFrame] = {
            SeriesType.PRICE: normalize_frame(price),
            SeriesType.MARKET_CAP: normalize_frame(market_cap),
        }
        for series_type, frame in self._frames.items():
            times = frame['time']
            if len(times) > 1 and not times.is_monotonic_increasing:
                raise DataError(
                    "Series must be time-ascending",
                    series_type=series_type.value
                )
            if times.duplicated().any():
                raise DataError(
                    "Series contains duplicate timestamps",
                    series_type=series_type.value
                )

        if metadata is None:
            metadata = self._derive_metadata(self._frames[SeriesType.PRICE])
        self.metadata = metadata
        self._bars: Dict[SeriesType, List[Bar]] = {}

    @staticmethod
    def _derive_metadata(frame: pd.DataFrame) -> SeriesMetadata:
        if frame.empty:
            raise DataError("Cannot derive metadata from an empty series")
        return SeriesMetadata(
            start_time=int(frame['time'].iloc[0]),
            end_time=int(frame['time'].iloc[-1])
        )

    @classmethod
    def from_bars(
        cls,
        price: Sequence[Bar],
        market_cap: Sequence[Bar],
        metadata: Optional[SeriesMetadata] = None
    ) -> "Series":
        """Build a series from Bar sequences."""
        from ..data.aggregator import bars_to_frame
        return cls(bars_to_frame(price), bars_to_frame(market_cap), metadata)

    def frame(self, series_type: SeriesType) -> pd.DataFrame:
        """Per-second DataFrame for ``series_type``."""
        return self._frames[SeriesType(series_type)]

    def bars(self, series_type: SeriesType) -> List[Bar]:
        """Per-second bars for ``series_type``."""
        series_type = SeriesType(series_type)
        if series_type not in self._bars:
            from ..data.aggregator import frame_to_bars
            self._bars[series_type] = frame_to_bars(self._frames[series_type])
        return self._bars[series_type]

    @property
    def origin(self) -> int:
        """First second of the dataset."""
        return self.metadata.start_time

    @property
    def now(self) -> int:
        """Last second of the dataset ("now" for default query windows)."""
        return self.metadata.end_time

    def __len__(self) -> int:
        """Number of per-second price bars."""
        return len(self._frames[SeriesType.PRICE])


# ============================================================================
# Query Types
# ============================================================================

@dataclass(frozen=True)
class Query:
    """
    Fully resolved range query; also the cache key.

    ``start`` and ``end`` are the clamped window; ``limit`` of None means no
    tail truncation.
    """
    series_id: str
    timeframe: Timeframe
    start: int
    end: int
    series_type: SeriesType = SeriesType.PRICE
    limit: Optional[int] = None

    def cache_key(self) -> str:
        """Deterministic string form of the full query tuple."""
        return (
            f"{self.series_id}|{self.timeframe.value}|{self.start}|{self.end}"
            f"|{self.series_type.value}|{self.limit}"
        )


@dataclass(frozen=True)
class ClampedRange:
    """
    Query window after clamping against the dataset origin.

    ``is_empty`` signals a valid empty result: callers return no bars without
    touching the cache or the aggregator.
    """
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    @property
    def span_seconds(self) -> int:
        """Inclusive width in seconds (0 when empty)."""
        return max(0, self.end - self.start + 1)


# ============================================================================
# Session State Types
# ============================================================================

@dataclass
class BackfillState:
    """
    Mutable backfill state owned by one chart session.

    Only the session's BackfillController mutates it. ``loaded_bars`` is kept
    strictly time-ascending with no duplicate timestamps.
    """
    loaded_bars: List[Bar] = field(default_factory=list)
    in_flight: bool = False
    last_fetch_at: Optional[float] = None
    phase: BackfillPhase = BackfillPhase.IDLE
    last_error: Optional[Exception] = None

    @property
    def earliest_loaded_time(self) -> Optional[int]:
        """Start time of the oldest loaded bar, or None when nothing is loaded."""
        if not self.loaded_bars:
            return None
        return self.loaded_bars[0].time
