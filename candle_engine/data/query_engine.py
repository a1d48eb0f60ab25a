"""
Query Engine - Range and paginated candle queries.

Responsibilities:
1. Resolve timeframe and series type names
2. Default missing windows to a trailing window ending at dataset "now"
3. Clamp windows through the range guard
4. Serve results through the range query cache
5. Aggregate per-second bars on cache misses

Both the full-range and the paginated path share one guard, one cache and
one aggregator.
"""

import time
from typing import List, Optional, Union

from ..core.constants import DEFAULT_LIMIT, DEFAULT_PAGE_SIZE, MAX_SPAN_SECONDS, SeriesType, Timeframe
from ..core.exceptions import InvalidParametersError, RangeTooLargeError, UnknownTimeframeError
from ..core.types import Bar, ClampedRange, Query
from ..monitoring.logger import get_logger
from ..monitoring.metrics_tracker import MetricsTracker
from .aggregator import aggregate_frame, frame_to_bars
from .range_guard import RangeGuard
from .series_store import SeriesStore


_DEFAULT_LIMIT = object()
"""Marker for "use the engine's default_limit"; None means no truncation."""


def resolve_timeframe(timeframe: Union[str, Timeframe]) -> Timeframe:
    """
    Resolve a timeframe name.

    Raises:
        UnknownTimeframeError: If the name is not supported
    """
    try:
        return Timeframe(timeframe)
    except ValueError:
        raise UnknownTimeframeError(
            f"Unknown timeframe: {timeframe}",
            supported=','.join(tf.value for tf in Timeframe)
        ) from None


def resolve_series_type(series_type: Union[str, SeriesType]) -> SeriesType:
    """
    Resolve a series type name ("price", "marketCap" or "mcap").

    Raises:
        InvalidParametersError: If the name is not supported
    """
    try:
        return SeriesType(series_type)
    except ValueError:
        raise InvalidParametersError(f"Unknown series type: {series_type}") from None


class CandleQueryEngine:
    """
    Answers candle range queries against a SeriesStore.
    """

    def __init__(
        self,
        store: SeriesStore,
        max_span_seconds: int = MAX_SPAN_SECONDS,
        default_limit: int = DEFAULT_LIMIT,
        metrics: Optional[MetricsTracker] = None
    ):
        """
        Initialize query engine.

        Args:
            store: Loaded base series and query cache
            max_span_seconds: Span cap applied to every clamped window
            default_limit: Limit used when the caller passes none
            metrics: Optional metrics tracker
        """
        self.store = store
        self.max_span_seconds = max_span_seconds
        self.default_limit = default_limit
        self.metrics = metrics
        self.logger = get_logger(__name__)

    def guard_for(self, series_id: str) -> RangeGuard:
        """Range guard bound to the bounds of ``series_id``."""
        series = self.store.get(series_id)
        return RangeGuard(
            dataset_origin=series.origin,
            dataset_now=series.now,
            max_span_seconds=self.max_span_seconds
        )

    def get_candles(
        self,
        series_id: str,
        timeframe: Union[str, Timeframe],
        start: Optional[int] = None,
        end: Optional[int] = None,
        series_type: Union[str, SeriesType] = SeriesType.PRICE,
        limit: Optional[int] = _DEFAULT_LIMIT
    ) -> List[Bar]:
        """
        Get aggregated bars for a time window.

        Args:
            series_id: Loaded series id
            timeframe: Target timeframe (e.g. "1m")
            start: First second; defaults to ``end - limit * bar_seconds + 1``
            end: Last second; defaults to the dataset's last second
            series_type: "price" or "marketCap"
            limit: Keep only the most recent ``limit`` bars (None = all;
                omitted = the engine's ``default_limit``)

        Returns:
            Bars ascending by time; empty when the clamped window is empty

        Raises:
            RangeTooLargeError: If the clamped window exceeds the span cap
            InvalidParametersError: On unknown names or a non-positive limit
            SeriesNotFoundError: If ``series_id`` is not loaded
        """
        started = time.perf_counter()
        tf = resolve_timeframe(timeframe)
        st = resolve_series_type(series_type)
        if limit is _DEFAULT_LIMIT:
            limit = self.default_limit
        if limit is not None and limit < 1:
            raise InvalidParametersError("limit must be >= 1", limit=limit)

        guard = self.guard_for(series_id)
        if end is None:
            end = guard.dataset_now
        if start is None:
            if limit is None:
                start = guard.dataset_origin
            else:
                start = end - limit * tf.seconds + 1

        window = self._clamp(guard, start, end, kind='candles')
        if window.is_empty:
            self._record('candles', 'empty', started, 0)
            return []

        query = Query(
            series_id=series_id,
            timeframe=tf,
            start=window.start,
            end=window.end,
            series_type=st,
            limit=limit
        )
        bars = self.store.cache.get_or_compute(query, lambda: self._compute(query))
        self._record('candles', 'ok', started, len(bars))
        return bars

    def get_page(
        self,
        series_id: str,
        timeframe: Union[str, Timeframe],
        start: Optional[int],
        end: Optional[int],
        series_type: Union[str, SeriesType] = SeriesType.PRICE,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> List[Bar]:
        """
        Get one fixed-size page of the aggregated window.

        Returns bars ``[page * page_size, page * page_size + page_size)`` of
        the full aggregated window (oldest first).

        Raises:
            InvalidParametersError: If start/end are missing, page < 0 or
                page_size < 1
            RangeTooLargeError: If the clamped window exceeds the span cap
        """
        started = time.perf_counter()
        if start is None or end is None:
            raise InvalidParametersError("start and end required", start=start, end=end)
        if page < 0:
            raise InvalidParametersError("page must be >= 0", page=page)
        if page_size < 1:
            raise InvalidParametersError("page_size must be >= 1", page_size=page_size)

        tf = resolve_timeframe(timeframe)
        st = resolve_series_type(series_type)

        window = self._clamp(self.guard_for(series_id), start, end, kind='page')
        if window.is_empty:
            self._record('page', 'empty', started, 0)
            return []

        query = Query(
            series_id=series_id,
            timeframe=tf,
            start=window.start,
            end=window.end,
            series_type=st,
            limit=None
        )
        bars = self.store.cache.get_or_compute(query, lambda: self._compute(query))

        offset = page * page_size
        result = bars[offset:offset + page_size]
        self._record('page', 'ok', started, len(result))
        return result

    def _clamp(self, guard: RangeGuard, start: int, end: int, kind: str) -> ClampedRange:
        try:
            return guard.clamp(start, end)
        except RangeTooLargeError:
            self.logger.warning("Query rejected: range too large", kind=kind, start=start, end=end)
            if self.metrics is not None:
                self.metrics.record_query(kind, 'rejected', 0.0)
            raise

    def _compute(self, query: Query) -> List[Bar]:
        """Filter, aggregate and limit the base bars for ``query``."""
        frame = self.store.slice(query.series_id, query.series_type, query.start, query.end)
        if frame.empty:
            return []

        out = aggregate_frame(frame, query.timeframe.seconds)

        # Keep the most recent bars
        if query.limit is not None and len(out) > query.limit:
            out = out.iloc[-query.limit:]

        return frame_to_bars(out)

    def _record(self, kind: str, outcome: str, started: float, bars: int) -> None:
        if self.metrics is not None:
            latency_ms = (time.perf_counter() - started) * 1000.0
            self.metrics.record_query(kind, outcome, latency_ms, bars)
