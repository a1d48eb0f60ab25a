"""
Unit tests for output projection.
"""

import pytest

from candle_engine.core.constants import ChartType
from candle_engine.core.types import Bar
from candle_engine.data.projection import bars_to_json, project, to_candlestick, to_line


@pytest.fixture
def bars():
    return [
        Bar(time=0, open=1.0, high=1.2, low=0.9, close=1.1, volume=10),
        Bar(time=60, open=1.1, high=1.3, low=1.0, close=1.25, volume=4),
    ]


def test_line_uses_close(bars):
    assert to_line(bars) == [{'time': 0, 'value': 1.1}, {'time': 60, 'value': 1.25}]


def test_candlestick_drops_volume(bars):
    shaped = to_candlestick(bars)
    assert shaped[0] == {'time': 0, 'open': 1.0, 'high': 1.2, 'low': 0.9, 'close': 1.1}


@pytest.mark.parametrize("chart_type,keys", [
    (ChartType.CANDLESTICK, {'time', 'open', 'high', 'low', 'close'}),
    ("marketCap", {'time', 'open', 'high', 'low', 'close'}),
    ("line", {'time', 'value'}),
])
def test_project_by_chart_type(bars, chart_type, keys):
    shaped = project(bars, chart_type)

    assert len(shaped) == len(bars)
    assert all(set(row) == keys for row in shaped)
    assert [row['time'] for row in shaped] == [0, 60]


def test_full_json_keeps_volume(bars):
    assert [row['volume'] for row in bars_to_json(bars)] == [10, 4]


def test_unknown_chart_type(bars):
    with pytest.raises(ValueError):
        project(bars, "heikin-ashi")
