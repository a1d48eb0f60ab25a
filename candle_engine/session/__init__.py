"""Chart session module: progressive backfill and per-chart state."""

from .backfill import BackfillController, BackfillResult, FetchWindow, backfill_window, merge_older
from .chart_session import CandleSource, ChartSession, EngineCandleSource

__all__ = [
    "BackfillController",
    "BackfillResult",
    "FetchWindow",
    "backfill_window",
    "merge_older",
    "CandleSource",
    "ChartSession",
    "EngineCandleSource",
]
