"""
Unit tests for the query engine (range and paginated queries).
"""

import pytest

from candle_engine.core.constants import MAX_SPAN_SECONDS, SeriesType
from candle_engine.core.exceptions import (
    InvalidParametersError,
    RangeTooLargeError,
    SeriesNotFoundError,
    UnknownTimeframeError,
)
from candle_engine.data.aggregator import aggregate
from candle_engine.data.query_engine import CandleQueryEngine, resolve_series_type
from candle_engine.data.series_store import SeriesStore
from candle_engine.data.sample_data import generate_sample_series
from candle_engine.monitoring.metrics_tracker import MetricsTracker


@pytest.fixture
def store(sample_series):
    store = SeriesStore()
    store.load("tok", sample_series)
    return store


@pytest.fixture
def engine(store):
    return CandleQueryEngine(store)


def _expected(series, series_type, start, end, bar_seconds):
    base = [b for b in series.bars(series_type) if start <= b.time <= end]
    return aggregate(base, bar_seconds)


def test_default_window_ends_at_dataset_now(engine, sample_series):
    """Missing start/end: trailing window of `limit` bars ending at now."""
    bars = engine.get_candles("tok", "1m", limit=5)

    now = sample_series.now
    assert len(bars) == 5
    assert bars[-1].time == (now // 60) * 60
    assert [b.time for b in bars] == sorted(b.time for b in bars)


def test_result_matches_direct_aggregation(engine, sample_series):
    start, end = sample_series.origin + 17, sample_series.origin + 400

    bars = engine.get_candles("tok", "15s", start=start, end=end, limit=None)

    assert bars == _expected(sample_series, SeriesType.PRICE, start, end, 15)


def test_limit_keeps_most_recent_bars(engine, sample_series):
    start, end = sample_series.origin, sample_series.now

    full = engine.get_candles("tok", "30s", start=start, end=end, limit=None)
    limited = engine.get_candles("tok", "30s", start=start, end=end, limit=4)

    assert limited == full[-4:]


def test_identical_queries_compute_once(engine, store):
    first = engine.get_candles("tok", "1m", limit=5)
    second = engine.get_candles("tok", "1m", limit=5)

    assert first == second
    assert store.cache.computes == 1
    assert store.cache.hits == 1


def test_market_cap_alias(engine, sample_series):
    start, end = sample_series.origin, sample_series.now

    bars = engine.get_candles("tok", "1m", start=start, end=end, series_type="mcap", limit=None)

    assert bars == _expected(sample_series, SeriesType.MARKET_CAP, start, end, 60)
    assert resolve_series_type("mcap") is SeriesType.MARKET_CAP


def test_window_before_origin_is_empty_without_cache_work(engine, store, sample_series):
    bars = engine.get_candles("tok", "1m", start=0, end=sample_series.origin - 1)

    assert bars == []
    assert len(store.cache) == 0
    assert store.cache.misses == 0


def test_span_cap_after_clamping(store, sample_series):
    engine = CandleQueryEngine(store, max_span_seconds=100)
    origin = sample_series.origin

    assert engine.get_candles("tok", "1s", start=origin - 500, end=origin + 99, limit=None)
    with pytest.raises(RangeTooLargeError):
        engine.get_candles("tok", "1s", start=origin - 500, end=origin + 100, limit=None)


def test_future_end_counts_towards_span(engine, sample_series):
    """The end is not clamped to now, so a far-future end is rejected."""
    with pytest.raises(RangeTooLargeError):
        engine.get_candles(
            "tok", "1h",
            start=sample_series.origin,
            end=sample_series.origin + MAX_SPAN_SECONDS
        )


def test_unknown_timeframe_is_rejected(engine):
    with pytest.raises(UnknownTimeframeError) as exc_info:
        engine.get_candles("tok", "2m")
    assert isinstance(exc_info.value, InvalidParametersError)


def test_invalid_limit(engine):
    with pytest.raises(InvalidParametersError):
        engine.get_candles("tok", "1m", limit=0)


def test_unknown_series(engine):
    with pytest.raises(SeriesNotFoundError):
        engine.get_candles("missing", "1m")


def test_pages_partition_the_window(engine, sample_series):
    start, end = sample_series.origin, sample_series.now
    full = engine.get_candles("tok", "5s", start=start, end=end, limit=None)

    pages = []
    page = 0
    while True:
        chunk = engine.get_page("tok", "5s", start, end, page=page, page_size=25)
        if not chunk:
            break
        assert len(chunk) <= 25
        pages.extend(chunk)
        page += 1

    assert pages == full
    assert page == -(-len(full) // 25)


def test_pages_share_one_cache_entry(engine, store, sample_series):
    start, end = sample_series.origin, sample_series.now

    for page in range(3):
        engine.get_page("tok", "1s", start, end, page=page, page_size=100)

    assert store.cache.computes == 1


def test_page_requires_start_and_end(engine, store):
    with pytest.raises(InvalidParametersError):
        engine.get_page("tok", "1s", None, 1756909000)
    with pytest.raises(InvalidParametersError):
        engine.get_page("tok", "1s", 1756908500, None)

    assert store.cache.misses == 0


@pytest.mark.parametrize("page,page_size", [(-1, 10), (0, 0)])
def test_page_rejects_bad_paging(engine, sample_series, page, page_size):
    with pytest.raises(InvalidParametersError):
        engine.get_page("tok", "1s", sample_series.origin, sample_series.now, page=page, page_size=page_size)


def test_reloading_series_invalidates_cache(engine, store):
    before = engine.get_candles("tok", "1m", limit=3)
    assert len(store.cache) == 1

    store.load("tok", generate_sample_series(seconds=600, now=1756909000, seed=999))

    assert len(store.cache) == 0
    after = engine.get_candles("tok", "1m", limit=3)
    assert [b.time for b in after] == [b.time for b in before]
    assert after != before


def test_metrics_record_outcomes(store, sample_series):
    metrics = MetricsTracker()
    engine = CandleQueryEngine(store, max_span_seconds=100, metrics=metrics)

    engine.get_candles("tok", "1s", start=sample_series.origin, end=sample_series.origin + 9)
    engine.get_candles("tok", "1s", start=0, end=10)
    with pytest.raises(RangeTooLargeError):
        engine.get_candles("tok", "1s", start=sample_series.origin, end=sample_series.now)

    outcomes = metrics.get_current_metrics()['query_outcomes']
    assert outcomes == {'ok': 1, 'empty': 1, 'rejected': 1}


def test_unloading_series_drops_its_cache_entries(engine, store):
    engine.get_candles("tok", "1m", limit=3)
    assert "tok" in store

    store.unload("tok")
    store.unload("tok")

    assert "tok" not in store
    assert len(store.cache) == 0
    with pytest.raises(SeriesNotFoundError):
        engine.get_candles("tok", "1m", limit=3)


def test_engine_default_limit_applies_when_limit_omitted(store, sample_series):
    engine = CandleQueryEngine(store, default_limit=10)

    bars = engine.get_candles("tok", "1s")

    assert len(bars) == 10
    assert bars[-1].time == sample_series.now
    assert len(engine.get_candles("tok", "1s", limit=None)) == len(sample_series)
