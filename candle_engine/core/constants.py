"""System-wide constants and enumerations for the candle engine.

This module defines the enumerated timeframes, series types and chart types,
plus the numeric defaults used by the range guard, the query cache and the
backfill controller. These values standardize string values across the
codebase and provide sensible defaults when configuration is silent.
"""

from enum import Enum
from typing import Dict, FrozenSet


# ============================================================================
# Enumerations
# ============================================================================

class Timeframe(str, Enum):
    """Enumeration of supported bar timeframes.

    Each member's value is its wire name; ``seconds`` gives the bar duration
    used as the bucket width by the aggregator.
    """
    S1 = "1s"
    S5 = "5s"
    S15 = "15s"
    S30 = "30s"
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    H6 = "6h"
    H24 = "24h"
    W1 = "1w"

    @property
    def seconds(self) -> int:
        """Bar duration in seconds."""
        return TIMEFRAME_SECONDS[self.value]


class SeriesType(str, Enum):
    """Enumeration of base series types.

    - PRICE: per-second token price OHLCV
    - MARKET_CAP: per-second market capitalisation OHLCV
    """
    PRICE = "price"
    MARKET_CAP = "marketCap"

    @classmethod
    def _missing_(cls, value):
        # "mcap" is the wire alias used by older clients
        if isinstance(value, str) and value.lower() in ("mcap", "marketcap", "market_cap"):
            return cls.MARKET_CAP
        return None


class ChartType(str, Enum):
    """Enumeration of consumer-facing output shapes.

    - CANDLESTICK: {time, open, high, low, close} over price bars
    - LINE: {time, value} where value is the close, over price bars
    - MARKET_CAP: candlestick shape over market-cap bars
    """
    CANDLESTICK = "candlestick"
    LINE = "line"
    MARKET_CAP = "marketCap"

    @property
    def series_type(self) -> SeriesType:
        """Base series the shape is projected from."""
        if self is ChartType.MARKET_CAP:
            return SeriesType.MARKET_CAP
        return SeriesType.PRICE


class BackfillPhase(str, Enum):
    """Enumeration of backfill controller phases.

    IDLE → FETCHING → MERGING → IDLE, or FETCHING → IDLE on failure.
    """
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    MERGING = "MERGING"


class BackfillOutcome(str, Enum):
    """Result of one backfill trigger evaluation."""
    DISABLED = "DISABLED"
    IN_FLIGHT = "IN_FLIGHT"
    THROTTLED = "THROTTLED"
    NOT_NEEDED = "NOT_NEEDED"
    EMPTY_WINDOW = "EMPTY_WINDOW"
    MERGED = "MERGED"
    FAILED = "FAILED"
    STALE = "STALE"


# ============================================================================
# Timeframe Tables
# ============================================================================

TIMEFRAME_SECONDS: Dict[str, int] = {
    "1s": 1,
    "5s": 5,
    "15s": 15,
    "30s": 30,
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "4h": 14400,
    "6h": 21600,
    "24h": 86400,
    "1w": 604800,
}
"""Bar duration in seconds for every supported timeframe."""

DEFAULT_WINDOW_BARS: Dict[str, int] = {
    "1s": 3600,
    "5s": 720,
    "15s": 240,
    "30s": 240,
    "1m": 1440,
    "5m": 288,
    "15m": 192,
    "30m": 192,
    "1h": 168,
    "4h": 168,
    "6h": 120,
    "24h": 30,
    "1w": 4,
}
"""Number of bars eagerly loaded when a chart session opens a timeframe.

Every window stays under the 30-day span cap once multiplied by the bar
duration.
"""


# ============================================================================
# Query Defaults
# ============================================================================

MAX_SPAN_SECONDS: int = 30 * 24 * 60 * 60
"""Maximum width of a single query window in seconds (30 days).

Applied to the clamped window before aggregation, independent of the
requested timeframe.
"""

DEFAULT_LIMIT: int = 100
"""Default number of most recent bars returned by a range query."""

DEFAULT_PAGE_SIZE: int = 100
"""Default page size for paginated queries."""

DEFAULT_CACHE_MAX_ENTRIES: int = 1024
"""Default LRU bound on the range query cache (entries, not bytes)."""


# ============================================================================
# Backfill Defaults
# ============================================================================

BACKFILL_EDGE_THRESHOLD_BARS: int = 30
"""Bars before the viewport's left edge below which backfill triggers."""

BACKFILL_THROTTLE_MS: float = 150.0
"""Minimum interval between two backfill trigger evaluations (milliseconds)."""

BACKFILL_GAP_MULTIPLIER: int = 2
"""Fetch window width as a multiple of the visible gap."""

BACKFILL_TIMEFRAMES: FrozenSet[str] = frozenset({"1s", "1m"})
"""Timeframes that load progressively; the rest load their window eagerly."""


# ============================================================================
# Sample Data Defaults
# ============================================================================

SAMPLE_NOW: int = 1756909000
"""Fixed "now" of the generated sample dataset (unix seconds)."""

SAMPLE_SECONDS: int = 600
"""Length of the generated sample dataset in seconds."""

SAMPLE_BASE_PRICE: float = 0.043
"""Starting price of the generated sample dataset."""

SAMPLE_SUPPLY: float = 1_000_000.0
"""Token supply used to derive the sample market-cap series."""
