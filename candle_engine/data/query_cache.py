"""
Range Query Cache - Memoize aggregated range query results.

Keyed by the full query tuple (series id, timeframe, start, end, series type,
limit). Only exact matches hit; overlapping windows are separate entries.
Entries never expire by age. Replacing a base series invalidates every entry
for its series id. An optional entry-count bound evicts least recently used
entries.
"""

from collections import OrderedDict
from typing import Callable, List, Optional, Sequence

from ..core.exceptions import InvalidConfigError
from ..core.types import Bar, Query
from ..monitoring.logger import get_logger


class RangeQueryCache:
    """
    Memoization cache for aggregated range queries.

    The only writer is the miss path of ``get_or_compute``.
    """

    def __init__(self, max_entries: Optional[int] = None):
        """
        Initialize query cache.

        Args:
            max_entries: LRU bound on the number of entries (None = unbounded)
        """
        if max_entries is not None and max_entries < 1:
            raise InvalidConfigError(
                "max_entries must be >= 1 or None",
                max_entries=max_entries
            )
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._series_ids: dict = {}

        # Counters (computes excludes misses whose compute_fn raised)
        self.hits = 0
        self.misses = 0
        self.computes = 0
        self.evictions = 0

        self.logger = get_logger(__name__)

    def get_or_compute(
        self,
        query: Query,
        compute_fn: Callable[[], Sequence[Bar]]
    ) -> List[Bar]:
        """
        Return the cached bars for ``query``, computing them on a miss.

        Args:
            query: Fully resolved query (the cache key)
            compute_fn: Produces the aggregated, limited bars on a miss

        Returns:
            Bars for the query (a new list each call)
        """
        key = query.cache_key()

        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return list(cached)

        self.misses += 1
        bars = tuple(compute_fn())
        self.computes += 1

        self._entries[key] = bars
        self._series_ids[key] = query.series_id
        self.logger.debug("Query cache miss", key=key, bars=len(bars))

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._series_ids.pop(evicted, None)
                self.evictions += 1

        return list(bars)

    def invalidate(self, series_id: str) -> int:
        """
        Drop every entry for ``series_id``.

        Returns:
            Number of entries removed
        """
        stale = [k for k, sid in self._series_ids.items() if sid == series_id]
        for key in stale:
            del self._entries[key]
            del self._series_ids[key]

        if stale:
            self.logger.info("Query cache invalidated", series_id=series_id, entries=len(stale))
        return len(stale)

    def clear(self) -> None:
        """Drop all entries (counters are kept)."""
        self._entries.clear()
        self._series_ids.clear()

    def __contains__(self, query: Query) -> bool:
        return query.cache_key() in self._entries

    def __len__(self) -> int:
        """Number of cached entries."""
        return len(self._entries)

    def get_status(self) -> dict:
        """Get current cache counters."""
        return {
            'entries': len(self._entries),
            'max_entries': self.max_entries,
            'hits': self.hits,
            'misses': self.misses,
            'computes': self.computes,
            'evictions': self.evictions,
        }
