"""
Series Store - Loaded base series plus the range query cache.

Explicitly constructed and passed to every component that needs it. Loading
a series under an existing id replaces it and invalidates that id's cached
query results.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..core.constants import SeriesType
from ..core.exceptions import SeriesNotFoundError
from ..core.types import Series
from ..monitoring.logger import get_logger
from .query_cache import RangeQueryCache


class SeriesStore:
    """
    Store for immutable base series with a shared query cache.
    """

    def __init__(self, cache: Optional[RangeQueryCache] = None):
        """
        Initialize series store.

        Args:
            cache: Query cache to use (a new unbounded cache if omitted)
        """
        self.cache = cache if cache is not None else RangeQueryCache()
        self._series: Dict[str, Series] = {}
        self.logger = get_logger(__name__)

    def load(self, series_id: str, series: Series) -> None:
        """
        Register ``series`` under ``series_id``.

        Replacing an existing series invalidates its cached query results.
        """
        replaced = series_id in self._series
        self._series[series_id] = series
        if replaced:
            self.cache.invalidate(series_id)

        self.logger.info(
            "Series loaded",
            series_id=series_id,
            seconds=len(series),
            start=series.metadata.start_time,
            end=series.metadata.end_time,
            replaced=replaced
        )

    def unload(self, series_id: str) -> None:
        """Remove a series and its cached query results."""
        if self._series.pop(series_id, None) is not None:
            self.cache.invalidate(series_id)

    def get(self, series_id: str) -> Series:
        """Get a loaded series."""
        if series_id not in self._series:
            raise SeriesNotFoundError(f"No data for series: {series_id}", series_id=series_id)
        return self._series[series_id]

    def slice(
        self,
        series_id: str,
        series_type: SeriesType,
        start: int,
        end: int
    ) -> pd.DataFrame:
        """
        Get the per-second bars with ``start <= time <= end``.

        Args:
            series_id: Loaded series id
            series_type: price or marketCap
            start: First second (inclusive)
            end: Last second (inclusive)

        Returns:
            DataFrame view of the matching rows (read-only by convention)
        """
        frame = self.get(series_id).frame(series_type)
        times = frame['time'].to_numpy()

        lo = int(np.searchsorted(times, start, side='left'))
        hi = int(np.searchsorted(times, end, side='right'))
        return frame.iloc[lo:hi]

    def series_ids(self) -> List[str]:
        return list(self._series)

    def __contains__(self, series_id: str) -> bool:
        return series_id in self._series

    def __len__(self) -> int:
        """Number of loaded series."""
        return len(self._series)
