"""
Chart Session - One chart's selection, loaded bars and backfill.

A session eagerly loads a default window for its timeframe, then extends it
backwards through its BackfillController as the viewport nears the left
edge. Changing the timeframe or chart type resets the accumulated state and
requires a fresh ``load()``.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..core.constants import DEFAULT_WINDOW_BARS, ChartType, SeriesType, Timeframe
from ..core.exceptions import TransportFailureError
from ..core.types import Bar
from ..data.projection import project
from ..data.query_engine import CandleQueryEngine
from ..monitoring.logger import get_logger
from .backfill import BackfillController, BackfillResult


class CandleSource:
    """
    Async source of aggregated bars for chart sessions.

    Implementations may call the query engine in-process or go over a
    transport; errors raised here are reported as TransportFailureError.
    """

    async def fetch_latest(
        self,
        timeframe: Timeframe,
        series_type: SeriesType,
        limit: int
    ) -> Sequence[Bar]:
        """The most recent ``limit`` bars ending at dataset "now"."""
        raise NotImplementedError

    async def fetch_range(
        self,
        timeframe: Timeframe,
        series_type: SeriesType,
        start: int,
        end: int
    ) -> Sequence[Bar]:
        """All bars in ``[start, end]``."""
        raise NotImplementedError


class EngineCandleSource(CandleSource):
    """CandleSource backed by an in-process CandleQueryEngine."""

    def __init__(self, engine: CandleQueryEngine, series_id: str):
        self.engine = engine
        self.series_id = series_id

    async def fetch_latest(self, timeframe, series_type, limit):
        return self.engine.get_candles(
            self.series_id,
            timeframe,
            series_type=series_type,
            limit=limit
        )

    async def fetch_range(self, timeframe, series_type, start, end):
        return self.engine.get_candles(
            self.series_id,
            timeframe,
            start=start,
            end=end,
            series_type=series_type,
            limit=None
        )


class ChartSession:
    """
    Chart session state and viewport handling.
    """

    def __init__(
        self,
        source: CandleSource,
        dataset_origin: int,
        timeframe: Union[str, Timeframe] = Timeframe.S1,
        chart_type: Union[str, ChartType] = ChartType.CANDLESTICK,
        window_bars: Optional[Mapping[str, int]] = None,
        **backfill_options: Any
    ):
        """
        Initialize chart session.

        Args:
            source: Where bars come from
            dataset_origin: First second of the dataset
            timeframe: Initial timeframe
            chart_type: Initial chart type
            window_bars: Bars loaded eagerly per timeframe
            **backfill_options: Passed to BackfillController
        """
        self.source = source
        self.timeframe = Timeframe(timeframe)
        self.chart_type = ChartType(chart_type)
        self.window_bars = dict(window_bars or DEFAULT_WINDOW_BARS)
        self.loaded = False

        self.controller = BackfillController(
            fetcher=self._fetch_older,
            timeframe=self.timeframe,
            dataset_origin=dataset_origin,
            **backfill_options
        )
        self.logger = get_logger(__name__)

    @property
    def series_type(self) -> SeriesType:
        return self.chart_type.series_type

    @property
    def bars(self) -> List[Bar]:
        """Loaded bars, oldest first."""
        return self.controller.state.loaded_bars

    @property
    def last_error(self) -> Optional[Exception]:
        """Most recent load or backfill failure, cleared by the next success."""
        return self.controller.state.last_error

    async def _fetch_older(self, start: int, end: int) -> Sequence[Bar]:
        return await self.source.fetch_range(self.timeframe, self.series_type, start, end)

    def select(
        self,
        timeframe: Optional[Union[str, Timeframe]] = None,
        chart_type: Optional[Union[str, ChartType]] = None
    ) -> bool:
        """
        Change the selection.

        Any change resets the backfill state to empty; call ``load()`` next.

        Returns:
            True if the selection changed
        """
        new_tf = Timeframe(timeframe) if timeframe is not None else self.timeframe
        new_ct = ChartType(chart_type) if chart_type is not None else self.chart_type
        if new_tf == self.timeframe and new_ct == self.chart_type:
            return False

        self.timeframe = new_tf
        self.chart_type = new_ct
        self.controller.reset(timeframe=new_tf)
        self.loaded = False

        self.logger.info("Chart selection changed", timeframe=new_tf.value, chart_type=new_ct.value)
        return True

    async def load(self) -> bool:
        """
        Eagerly load the default window for the current timeframe.

        Returns:
            True if bars were loaded; False on failure, on a closed session
            or if the selection changed while loading
        """
        if self.controller.closed:
            self.logger.warning("Load ignored on closed session", timeframe=self.timeframe.value)
            return False

        generation = self.controller.generation
        limit = self.window_bars.get(self.timeframe.value, 200)

        try:
            bars = await self.source.fetch_latest(self.timeframe, self.series_type, limit)
        except Exception as e:
            if generation != self.controller.generation:
                return False
            error = TransportFailureError(
                f"Initial load failed: {e!r}",
                timeframe=self.timeframe.value,
                chart_type=self.chart_type.value
            )
            self.controller.record_failure(error)
            self.logger.error("Initial load failed", exc_info=True, timeframe=self.timeframe.value)
            return False

        if generation != self.controller.generation:
            self.logger.info("Discarding stale initial load", timeframe=self.timeframe.value)
            return False

        self.controller.set_loaded(bars)
        self.loaded = True
        self.logger.info(
            "Chart loaded",
            timeframe=self.timeframe.value,
            chart_type=self.chart_type.value,
            bars=len(self.bars)
        )
        return True

    async def on_visible_range_change(self, bars_before: int, visible_start: int) -> BackfillResult:
        """Forward a viewport change to the backfill controller."""
        return await self.controller.maybe_backfill(bars_before, visible_start)

    def view(self) -> List[Dict[str, Any]]:
        """Loaded bars projected into the selected chart shape."""
        return project(self.bars, self.chart_type)

    def close(self) -> None:
        """End the session; in-flight fetches become stale."""
        self.controller.close()
        self.loaded = False
