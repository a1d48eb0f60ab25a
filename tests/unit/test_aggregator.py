"""
Unit tests for the bucket aggregator.

Tests use synthetic per-second bars and check every output bucket against
the input bars that fall into it.
"""

from collections import defaultdict

import pandas as pd
import pytest

from candle_engine.core.exceptions import InvalidParametersError
from candle_engine.core.types import Bar
from candle_engine.data.aggregator import aggregate, aggregate_frame, bars_to_frame, frame_to_bars


def _buckets(bars, bar_seconds):
    grouped = defaultdict(list)
    for b in bars:
        grouped[(b.time // bar_seconds) * bar_seconds].append(b)
    return grouped


def test_two_second_scenario():
    """Two 1s bars aggregated at 2s collapse into one bar."""
    bars = [
        Bar(time=0, open=1.0, high=1.1, low=0.9, close=1.05, volume=10),
        Bar(time=1, open=1.05, high=1.2, low=1.0, close=1.1, volume=20),
    ]

    result = aggregate(bars, 2)

    assert result == [Bar(time=0, open=1.0, high=1.2, low=0.9, close=1.1, volume=30)]


def test_identity_for_one_second(make_seconds):
    """aggregate(bars, 1) returns the input unchanged."""
    bars = make_seconds(50)
    assert aggregate(bars, 1) is bars
    assert aggregate([], 1) == []


def test_empty_input():
    assert aggregate([], 60) == []
    assert aggregate_frame(bars_to_frame([]), 60).empty


@pytest.mark.parametrize("bar_seconds", [2, 5, 7, 60, 300])
def test_bucket_properties(make_seconds, bar_seconds):
    """Every bucket's OHLCV is derived from exactly its contributing bars."""
    bars = make_seconds(901, start=1756908000, seed=bar_seconds)
    result = aggregate(bars, bar_seconds)
    expected = _buckets(bars, bar_seconds)

    assert [b.time for b in result] == sorted(expected)

    for out in result:
        members = expected[out.time]
        assert all(out.high >= m.high for m in members)
        assert all(out.low <= m.low for m in members)
        assert out.high == max(m.high for m in members)
        assert out.low == min(m.low for m in members)
        assert out.open == members[0].open
        assert out.close == members[-1].close
        assert out.volume == sum(m.volume for m in members)


def test_output_strictly_ascending_and_aligned(make_seconds):
    result = aggregate(make_seconds(1000, start=13), 60)

    times = [b.time for b in result]
    assert times == sorted(set(times))
    assert all(t % 60 == 0 for t in times)


def test_deterministic(make_seconds):
    """Repeated aggregation of the same input yields identical output."""
    bars = make_seconds(500, seed=3)

    first = aggregate(bars, 15)
    second = aggregate(bars, 15)

    assert first == second
    pd.testing.assert_frame_equal(
        aggregate_frame(bars_to_frame(bars), 15),
        aggregate_frame(bars_to_frame(bars), 15)
    )


def test_unaligned_timestamps_bucket_by_flooring():
    bars = [
        Bar(time=3, open=2.0, high=2.5, low=1.5, close=2.2, volume=1),
        Bar(time=7, open=2.2, high=2.3, low=2.1, close=2.25, volume=2),
        Bar(time=8, open=2.25, high=2.6, low=2.0, close=2.4, volume=3),
    ]

    result = aggregate(bars, 5)

    assert [b.time for b in result] == [0, 5]
    assert result[1] == Bar(time=5, open=2.2, high=2.6, low=2.0, close=2.4, volume=5)


def test_negative_times_floor_downwards():
    bars = [
        Bar(time=-1, open=1.0, high=1.0, low=1.0, close=1.0, volume=1),
        Bar(time=0, open=1.0, high=1.0, low=1.0, close=1.0, volume=1),
    ]
    assert [b.time for b in aggregate(bars, 5)] == [-5, 0]


def test_gaps_do_not_create_empty_buckets():
    bars = [
        Bar(time=0, open=1.0, high=1.0, low=1.0, close=1.0),
        Bar(time=1, open=1.0, high=1.0, low=1.0, close=1.0),
        Bar(time=125, open=1.0, high=1.0, low=1.0, close=1.0),
    ]
    assert [b.time for b in aggregate(bars, 60)] == [0, 120]


def test_frame_path_matches_bar_path(make_seconds):
    bars = make_seconds(400, start=100, seed=11)

    via_frame = frame_to_bars(aggregate_frame(bars_to_frame(bars), 30))

    assert via_frame == aggregate(bars, 30)


def test_identity_frame_is_returned_as_is(make_seconds):
    frame = bars_to_frame(make_seconds(10))
    assert aggregate_frame(frame, 1) is frame


@pytest.mark.parametrize("bad", [0, -60, 1.5, True])
def test_rejects_invalid_bar_seconds(make_seconds, bad):
    with pytest.raises(InvalidParametersError):
        aggregate(make_seconds(5), bad)
