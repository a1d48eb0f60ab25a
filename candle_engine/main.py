"""
Candle Engine - Central orchestrator.

Wires configuration, logging, the base series, the series store and the
query engine together, and opens chart sessions against them.

Command line:
    python -m candle_engine.main candles --tf 1m --limit 50
    python -m candle_engine.main page --tf 1s --start 1756908401 --end 1756909000 --page 1
"""

import argparse
import json
import sys
from typing import List, Optional, Union

from .core.config import EngineConfig, load_config
from .core.constants import ChartType, SeriesType, Timeframe
from .core.exceptions import CandleEngineError, InvalidParametersError
from .core.types import Series
from .data.loader import load_series
from .data.projection import bars_to_json, project
from .data.query_cache import RangeQueryCache
from .data.query_engine import CandleQueryEngine, resolve_series_type
from .data.series_store import SeriesStore
from .monitoring.logger import get_logger, setup_logger
from .monitoring.metrics_tracker import MetricsTracker
from .session.chart_session import ChartSession, EngineCandleSource


class CandleEngine:
    """
    Engine orchestrator.

    Owns the store, the query engine and the metrics tracker.
    """

    def __init__(self, config: Optional[EngineConfig] = None, series: Optional[Series] = None):
        """
        Initialize candle engine.

        Args:
            config: Engine configuration (defaults if omitted)
            series: Base series to load; read from ``config.data_file`` if omitted
        """
        self.config = config or EngineConfig()
        self.logger = get_logger(__name__)

        self.metrics = MetricsTracker()
        self.store = SeriesStore(cache=RangeQueryCache(max_entries=self.config.cache_max_entries))
        self.query_engine = CandleQueryEngine(
            self.store,
            max_span_seconds=self.config.max_span_seconds,
            default_limit=self.config.default_limit,
            metrics=self.metrics
        )

        if series is None:
            series = load_series(
                self.config.data_file,
                fallback_seconds=self.config.sample_seconds,
                now=self.config.sample_now,
                seed=self.config.sample_seed
            )
        self.load_series(series)

    @classmethod
    def from_config(cls, config_file: str = "config/config.yaml") -> "CandleEngine":
        """Load configuration, set up logging and build the engine."""
        config = load_config(config_file)
        setup_logger(log_file=config.log_file, level=config.log_level)
        return cls(config)

    def load_series(self, series: Series, series_id: Optional[str] = None) -> None:
        """Load or replace a base series (invalidates its cached queries)."""
        self.store.load(series_id or self.config.series_id, series)

    def open_session(
        self,
        series_id: Optional[str] = None,
        timeframe: Union[str, Timeframe] = Timeframe.S1,
        chart_type: Union[str, ChartType] = ChartType.CANDLESTICK
    ) -> ChartSession:
        """Open a chart session backed by this engine's query path."""
        series_id = series_id or self.config.series_id
        series = self.store.get(series_id)
        return ChartSession(
            source=EngineCandleSource(self.query_engine, series_id),
            dataset_origin=series.origin,
            timeframe=timeframe,
            chart_type=chart_type,
            window_bars=self.config.window_bars,
            metrics=self.metrics,
            **self.config.backfill_options()
        )

    def get_status(self) -> dict:
        """Snapshot of loaded series, cache counters and metrics."""
        return {
            'series': {
                sid: self.store.get(sid).metadata.to_dict() for sid in self.store.series_ids()
            },
            'cache': self.store.cache.get_status(),
            'metrics': self.metrics.get_current_metrics(),
        }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query resampled OHLCV candles")
    parser.add_argument("--config", default="config/config.yaml", help="Path to config YAML")
    sub = parser.add_subparsers(dest="command", required=True)

    candles = sub.add_parser("candles", help="Range query (trailing window by default)")
    candles.add_argument("--tf", default="1m", help="Timeframe, e.g. 1s, 1m, 1h")
    candles.add_argument("--start", type=int, default=None)
    candles.add_argument("--end", type=int, default=None)
    candles.add_argument("--type", default=None,
                         help="price | marketCap | mcap (default: the shape's series, else price)")
    candles.add_argument("--limit", type=int, default=None)
    candles.add_argument("--shape", choices=[c.value for c in ChartType], default=None,
                         help="Project to a chart shape instead of full OHLCV")

    page = sub.add_parser("page", help="Paginated query (start and end required)")
    page.add_argument("--tf", default="1s")
    page.add_argument("--start", type=int, default=None)
    page.add_argument("--end", type=int, default=None)
    page.add_argument("--type", default="price")
    page.add_argument("--page", type=int, default=0)
    page.add_argument("--page-size", type=int, default=None)

    sub.add_parser("status", help="Show loaded series and cache status")
    return parser


def _candles_series_type(type_name: Optional[str], shape: Optional[str]) -> SeriesType:
    """
    Series type for the candles command.

    A shape implies its series; an explicit ``--type`` must agree with it.
    """
    series_type = resolve_series_type(type_name) if type_name else None
    if not shape:
        return series_type or SeriesType.PRICE

    implied = ChartType(shape).series_type
    if series_type is not None and series_type is not implied:
        raise InvalidParametersError(
            "Series type does not match chart shape",
            type=series_type.value,
            shape=shape
        )
    return implied


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; prints JSON to stdout."""
    args = _build_parser().parse_args(argv)
    logger = get_logger(__name__)

    try:
        engine = CandleEngine.from_config(args.config)
        series_id = engine.config.series_id

        if args.command == "candles":
            series_type = _candles_series_type(args.type, args.shape)
            options = {'limit': args.limit} if args.limit is not None else {}
            bars = engine.query_engine.get_candles(
                series_id, args.tf, start=args.start, end=args.end,
                series_type=series_type, **options
            )
            if args.shape:
                output = project(bars, args.shape)
            else:
                output = bars_to_json(bars)
        elif args.command == "page":
            page_size = args.page_size or engine.config.default_page_size
            bars = engine.query_engine.get_page(
                series_id, args.tf, args.start, args.end,
                series_type=resolve_series_type(args.type), page=args.page, page_size=page_size
            )
            output = bars_to_json(bars)
        else:
            output = engine.get_status()

    except CandleEngineError as e:
        logger.error("Request failed", error=str(e))
        print(json.dumps({'error': type(e).__name__, 'message': str(e)}))
        return 2

    print(json.dumps(output))
    return 0


if __name__ == "__main__":
    sys.exit(main())
