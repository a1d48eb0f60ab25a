"""
Backfill Controller - Progressive backward loading for one chart session.

State machine:
    IDLE → FETCHING → MERGING → IDLE
              ↓
            IDLE (fetch failed, loaded bars untouched, no retry)

A trigger is evaluated synchronously before the first await, so the
in-flight flag is set before any other trigger can run and merges apply in
fetch-issue order. ``reset()`` and ``close()`` start a new generation; a
fetch that completes for an older generation is discarded.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Union

from ..core.constants import (
    BACKFILL_EDGE_THRESHOLD_BARS,
    BACKFILL_GAP_MULTIPLIER,
    BACKFILL_THROTTLE_MS,
    BACKFILL_TIMEFRAMES,
    BackfillOutcome,
    BackfillPhase,
    Timeframe,
)
from ..core.exceptions import InvalidConfigError, TransportFailureError
from ..core.types import BackfillState, Bar
from ..monitoring.logger import get_logger
from ..monitoring.metrics_tracker import MetricsTracker


Fetcher = Callable[[int, int], Awaitable[Sequence[Bar]]]
"""Async callable returning the bars of ``[start, end]`` at the session timeframe."""


@dataclass(frozen=True)
class FetchWindow:
    """Inclusive window of an older slice to fetch."""
    start: int
    end: int


@dataclass
class BackfillResult:
    """Outcome of one trigger evaluation."""
    outcome: BackfillOutcome
    added: int = 0
    window: Optional[FetchWindow] = None
    error: Optional[TransportFailureError] = None


def merge_older(loaded: Sequence[Bar], fetched: Iterable[Bar]) -> List[Bar]:
    """
    Prepend an older slice to the loaded bars.

    Fetched bars at or after the earliest loaded time are discarded, so the
    result stays strictly time-ascending with no duplicate timestamps.
    Within the slice, duplicate timestamps keep the last bar.
    """
    if loaded:
        first_loaded = loaded[0].time
        older = [b for b in fetched if b.time < first_loaded]
    else:
        older = list(fetched)

    by_time = {}
    for bar in older:
        by_time[bar.time] = bar

    return [by_time[t] for t in sorted(by_time)] + list(loaded)


def backfill_window(
    earliest_loaded: int,
    visible_start: int,
    dataset_origin: int,
    bar_seconds: int = 1,
    gap_multiplier: int = BACKFILL_GAP_MULTIPLIER
) -> Optional[FetchWindow]:
    """
    Window of the next older slice.

    Covers ``[max(origin, earliest - multiplier * gap), earliest - 1]`` with
    ``gap = |visible_start - earliest|``; the start is aligned down to a bar
    boundary but never below the origin.

    Returns:
        FetchWindow, or None when the window is empty
    """
    gap = abs(visible_start - earliest_loaded)
    start = max(dataset_origin, earliest_loaded - gap_multiplier * gap)
    start = max(dataset_origin, (start // bar_seconds) * bar_seconds)
    end = earliest_loaded - 1

    if start > end:
        return None
    return FetchWindow(start=start, end=end)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class BackfillController:
    """
    Drives backward pagination for one chart session.

    Owns the session's BackfillState; nothing else mutates it.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        timeframe: Union[str, Timeframe],
        dataset_origin: int,
        edge_threshold_bars: int = BACKFILL_EDGE_THRESHOLD_BARS,
        throttle_ms: float = BACKFILL_THROTTLE_MS,
        enabled_timeframes: Iterable[str] = BACKFILL_TIMEFRAMES,
        fetch_timeout: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional[MetricsTracker] = None
    ):
        """
        Initialize backfill controller.

        Args:
            fetcher: Async source of older bars at the session timeframe
            timeframe: Session timeframe
            dataset_origin: First second of the dataset (fetches never go earlier)
            edge_threshold_bars: Trigger when fewer bars precede the viewport
            throttle_ms: Ignore evaluations closer together than this
            enabled_timeframes: Timeframes that backfill at all
            fetch_timeout: Seconds before a fetch counts as failed (None = wait)
            clock: Monotonic clock in milliseconds
            metrics: Optional metrics tracker
        """
        if edge_threshold_bars < 1:
            raise InvalidConfigError("edge_threshold_bars must be >= 1", value=edge_threshold_bars)
        if throttle_ms < 0:
            raise InvalidConfigError("throttle_ms must be >= 0", value=throttle_ms)
        if fetch_timeout is not None and fetch_timeout <= 0:
            raise InvalidConfigError("fetch_timeout must be positive", value=fetch_timeout)

        self.fetcher = fetcher
        self.timeframe = Timeframe(timeframe)
        self.dataset_origin = int(dataset_origin)
        self.edge_threshold_bars = edge_threshold_bars
        self.throttle_ms = throttle_ms
        self.enabled_timeframes = frozenset(Timeframe(tf).value for tf in enabled_timeframes)
        self.fetch_timeout = fetch_timeout
        self.clock = clock or _monotonic_ms
        self.metrics = metrics

        self._state = BackfillState()
        self._generation = 0
        self._closed = False

        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> BackfillState:
        return self._state

    @property
    def generation(self) -> int:
        """Incremented by every reset; fetches from older generations are stale."""
        return self._generation

    @property
    def closed(self) -> bool:
        """True once ``close()`` has been called."""
        return self._closed

    @property
    def enabled(self) -> bool:
        """True if the session timeframe loads progressively."""
        return self.timeframe.value in self.enabled_timeframes and not self._closed

    def set_loaded(self, bars: Sequence[Bar]) -> None:
        """Replace the loaded bars with an initial load result."""
        self._state.loaded_bars = merge_older([], bars)
        self._state.last_error = None

    def record_failure(self, error: TransportFailureError) -> None:
        """Record a failed initial load; loaded bars are left untouched."""
        self._state.last_error = error

    def reset(self, timeframe: Optional[Union[str, Timeframe]] = None) -> None:
        """
        Discard accumulated state (selection change).

        Any fetch still in flight becomes stale.
        """
        if timeframe is not None:
            self.timeframe = Timeframe(timeframe)
        self._generation += 1
        self._state = BackfillState()

    def close(self) -> None:
        """Tear down: drop state and disable further backfill."""
        self.reset()
        self._closed = True

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def _evaluate(self, bars_before: int, visible_start: int) -> Union[BackfillOutcome, FetchWindow]:
        """Synchronous part of a trigger; returns an outcome or the window to fetch."""
        state = self._state

        if not self.enabled:
            return BackfillOutcome.DISABLED
        if state.in_flight:
            return BackfillOutcome.IN_FLIGHT

        now = self.clock()
        if state.last_fetch_at is not None and now - state.last_fetch_at < self.throttle_ms:
            return BackfillOutcome.THROTTLED
        state.last_fetch_at = now

        earliest = state.earliest_loaded_time
        if earliest is None or bars_before >= self.edge_threshold_bars:
            return BackfillOutcome.NOT_NEEDED

        window = backfill_window(
            earliest_loaded=earliest,
            visible_start=visible_start,
            dataset_origin=self.dataset_origin,
            bar_seconds=self.timeframe.seconds
        )
        if window is None:
            return BackfillOutcome.EMPTY_WINDOW
        return window

    async def maybe_backfill(self, bars_before: int, visible_start: int) -> BackfillResult:
        """
        Evaluate a viewport change and backfill if near the left edge.

        Args:
            bars_before: Loaded bars preceding the viewport's left boundary
            visible_start: Time at the viewport's left boundary

        Returns:
            BackfillResult; ignored triggers leave the state unchanged
        """
        decision = self._evaluate(bars_before, visible_start)
        if isinstance(decision, BackfillOutcome):
            result = BackfillResult(outcome=decision)
        else:
            result = await self._backfill(decision)

        if self.metrics is not None:
            self.metrics.record_backfill(result.outcome.value, result.added)
        return result

    async def _fetch(self, window: FetchWindow) -> Sequence[Bar]:
        if self.fetch_timeout is None:
            return await self.fetcher(window.start, window.end)
        return await asyncio.wait_for(self.fetcher(window.start, window.end), self.fetch_timeout)

    async def _backfill(self, window: FetchWindow) -> BackfillResult:
        state = self._state
        generation = self._generation

        state.in_flight = True
        state.phase = BackfillPhase.FETCHING
        try:
            try:
                fetched = await self._fetch(window)
            except Exception as e:
                if generation != self._generation:
                    return BackfillResult(outcome=BackfillOutcome.STALE, window=window)

                error = TransportFailureError(
                    f"Backfill fetch failed: {e!r}",
                    start=window.start,
                    end=window.end,
                    timeframe=self.timeframe.value
                )
                state.last_error = error
                self.logger.error(
                    "Backfill fetch failed",
                    exc_info=True,
                    start=window.start,
                    end=window.end
                )
                return BackfillResult(outcome=BackfillOutcome.FAILED, window=window, error=error)

            if generation != self._generation:
                self.logger.info("Discarding stale backfill", start=window.start, end=window.end)
                return BackfillResult(outcome=BackfillOutcome.STALE, window=window)

            state.phase = BackfillPhase.MERGING
            before = len(state.loaded_bars)
            state.loaded_bars = merge_older(state.loaded_bars, fetched)
            state.last_error = None
            added = len(state.loaded_bars) - before

            self.logger.info(
                "Backfill merged",
                added=added,
                total=len(state.loaded_bars),
                start=window.start,
                end=window.end
            )
            return BackfillResult(outcome=BackfillOutcome.MERGED, added=added, window=window)
        finally:
            # A stale state object is no longer referenced by the controller
            state.in_flight = False
            state.phase = BackfillPhase.IDLE
