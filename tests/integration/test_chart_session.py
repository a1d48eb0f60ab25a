"""
Integration tests: chart sessions over the real query path.
"""

import asyncio

import pytest

from candle_engine.core.constants import BackfillOutcome, ChartType, SeriesType, Timeframe
from candle_engine.core.exceptions import TransportFailureError
from candle_engine.session.chart_session import CandleSource, ChartSession


def _assert_strictly_ascending(bars):
    times = [b.time for b in bars]
    assert times == sorted(set(times))


def test_scroll_back_to_origin(engine, long_series):
    """Repeated left-edge triggers load the 1s series back to the origin."""
    session = engine.open_session(timeframe="1s")
    session.window_bars["1s"] = 600

    async def scroll():
        assert await session.load()
        outcomes = []
        for _ in range(50):
            first = session.bars[0].time
            result = await session.on_visible_range_change(bars_before=10, visible_start=first + 300)
            outcomes.append(result.outcome)
            if result.outcome is not BackfillOutcome.MERGED:
                break
        return outcomes

    outcomes = asyncio.run(scroll())

    assert outcomes[-1] is BackfillOutcome.EMPTY_WINDOW
    assert session.bars[0].time == long_series.origin
    assert session.bars[-1].time == long_series.now
    assert len(session.bars) == len(long_series)
    assert session.bars == long_series.bars(SeriesType.PRICE)
    _assert_strictly_ascending(session.bars)


def test_minute_session_already_at_origin(engine, long_series):
    """The 1m default window covers the whole two-hour dataset."""
    session = engine.open_session(timeframe="1m")

    async def run():
        await session.load()
        return await session.on_visible_range_change(bars_before=0, visible_start=session.bars[0].time)

    result = asyncio.run(run())

    expected = engine.query_engine.get_candles(
        "tok", "1m", start=long_series.origin, end=long_series.now, limit=None
    )
    assert result.outcome is BackfillOutcome.EMPTY_WINDOW
    assert session.bars == expected
    assert session.bars[0].time < long_series.origin
    _assert_strictly_ascending(session.bars)


def test_hour_session_never_backfills(engine):
    session = engine.open_session(timeframe="1h")

    async def run():
        await session.load()
        return await session.on_visible_range_change(bars_before=0, visible_start=0)

    assert asyncio.run(run()).outcome is BackfillOutcome.DISABLED


def test_selection_change_resets_state(engine):
    session = engine.open_session(timeframe="1s")
    asyncio.run(session.load())
    assert session.bars

    assert session.select(timeframe="5m") is True
    assert session.bars == []
    assert not session.loaded
    assert session.select(timeframe="5m") is False


def test_views_follow_chart_type(engine, long_series):
    session = engine.open_session(timeframe="1m", chart_type="line")
    asyncio.run(session.load())

    view = session.view()
    assert set(view[0]) == {'time', 'value'}
    assert view[-1]['value'] == session.bars[-1].close

    session.select(chart_type=ChartType.MARKET_CAP)
    asyncio.run(session.load())

    assert session.series_type is SeriesType.MARKET_CAP
    assert set(session.view()[0]) == {'time', 'open', 'high', 'low', 'close'}
    mcap_close = long_series.bars(SeriesType.MARKET_CAP)[-1].close
    assert session.bars[-1].close == mcap_close


def test_engine_metrics_see_session_traffic(engine):
    session = engine.open_session(timeframe="1s")
    session.window_bars["1s"] = 100

    async def run():
        await session.load()
        await session.on_visible_range_change(bars_before=10, visible_start=session.bars[0].time + 10)

    asyncio.run(run())

    status = engine.get_status()
    assert status['metrics']['backfill_outcomes'] == {'MERGED': 1}
    assert status['metrics']['bars_backfilled'] == 20
    assert status['series']['tok']['endTime'] == engine.store.get('tok').now


class FailingSource(CandleSource):
    async def fetch_latest(self, timeframe, series_type, limit):
        raise ConnectionError("server unreachable")

    async def fetch_range(self, timeframe, series_type, start, end):
        raise ConnectionError("server unreachable")


def test_load_failure_surfaces_error():
    session = ChartSession(FailingSource(), dataset_origin=0)

    assert asyncio.run(session.load()) is False
    assert isinstance(session.last_error, TransportFailureError)
    assert session.bars == []
    assert not session.loaded


class GatedSource(CandleSource):
    def __init__(self, bars):
        self.bars = bars
        self.gate = None

    async def fetch_latest(self, timeframe, series_type, limit):
        await self.gate.wait()
        return self.bars[-limit:]

    async def fetch_range(self, timeframe, series_type, start, end):
        return [b for b in self.bars if start <= b.time <= end]


def test_load_for_old_selection_is_discarded(make_seconds):
    source = GatedSource(make_seconds(100, start=1000))
    session = ChartSession(source, dataset_origin=1000)

    async def run():
        source.gate = asyncio.Event()
        task = asyncio.ensure_future(session.load())
        await asyncio.sleep(0)
        session.select(timeframe=Timeframe.M1)
        source.gate.set()
        return await task

    assert asyncio.run(run()) is False
    assert session.bars == []


def test_close_ends_backfill(engine):
    session = engine.open_session(timeframe="1s")
    asyncio.run(session.load())
    session.close()

    result = asyncio.run(session.on_visible_range_change(bars_before=0, visible_start=0))

    assert result.outcome is BackfillOutcome.DISABLED
    assert session.bars == []


@pytest.mark.parametrize("timeframe,window", [("1s", 3600), ("1m", 1440)])
def test_default_windows_are_configured(engine, timeframe, window):
    assert engine.open_session(timeframe=timeframe).window_bars[timeframe] == window


def test_closed_session_does_not_reload(engine):
    session = engine.open_session(timeframe="1s")
    asyncio.run(session.load())
    session.close()

    assert asyncio.run(session.load()) is False
    assert session.bars == []
    assert not session.loaded
    assert session.controller.closed


def test_close_during_load_discards_result(make_seconds):
    source = GatedSource(make_seconds(100, start=1000))
    session = ChartSession(source, dataset_origin=1000)

    async def run():
        source.gate = asyncio.Event()
        task = asyncio.ensure_future(session.load())
        await asyncio.sleep(0)
        session.close()
        source.gate.set()
        return await task

    assert asyncio.run(run()) is False
    assert session.bars == []
