"""
Data Layer - Base series storage, resampling and range queries.

This module provides the query infrastructure of the engine:
- Bucket aggregation of per-second bars into coarser timeframes
- Range clamping against dataset bounds and the span cap
- Memoized range queries
- Base series loading and validation

Main Components:
    CandleQueryEngine: Full-range and paginated queries
    SeriesStore: Loaded base series plus the shared query cache
    RangeQueryCache: Exact-key memoization of aggregated results
    RangeGuard: Window clamping and span cap
    DataValidator: Row validation for loaded bars
"""

from .aggregator import aggregate, aggregate_frame, bars_to_frame, frame_to_bars
from .range_guard import RangeGuard, clamp
from .query_cache import RangeQueryCache
from .series_store import SeriesStore
from .query_engine import CandleQueryEngine, resolve_series_type, resolve_timeframe
from .projection import project, bars_to_json
from .data_validator import DataValidator
from .loader import load_series, load_series_file, save_series_file
from .sample_data import generate_sample_series

__all__ = [
    "aggregate",
    "aggregate_frame",
    "bars_to_frame",
    "frame_to_bars",
    "RangeGuard",
    "clamp",
    "RangeQueryCache",
    "SeriesStore",
    "CandleQueryEngine",
    "resolve_series_type",
    "resolve_timeframe",
    "project",
    "bars_to_json",
    "DataValidator",
    "load_series",
    "load_series_file",
    "save_series_file",
    "generate_sample_series",
]
