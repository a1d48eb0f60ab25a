"""
Projection - Consumer-facing output shapes.

Shape selection is applied after aggregation; it never changes which bars a
query returns.
"""

from typing import Any, Dict, List, Sequence, Union

from ..core.constants import ChartType
from ..core.types import Bar


def to_candlestick(bars: Sequence[Bar]) -> List[Dict[str, Any]]:
    """``{time, open, high, low, close}`` per bar."""
    return [
        {'time': b.time, 'open': b.open, 'high': b.high, 'low': b.low, 'close': b.close}
        for b in bars
    ]


def to_line(bars: Sequence[Bar]) -> List[Dict[str, Any]]:
    """``{time, value}`` per bar, value being the close."""
    return [{'time': b.time, 'value': b.close} for b in bars]


def project(bars: Sequence[Bar], chart_type: Union[str, ChartType]) -> List[Dict[str, Any]]:
    """
    Project bars into the shape of ``chart_type``.

    Market-cap charts use the candlestick shape; the caller supplies
    market-cap bars (see ``ChartType.series_type``).
    """
    chart_type = ChartType(chart_type)
    if chart_type is ChartType.LINE:
        return to_line(bars)
    return to_candlestick(bars)


def bars_to_json(bars: Sequence[Bar]) -> List[Dict[str, Any]]:
    """Full OHLCV wire representation, volume included."""
    return [b.to_dict() for b in bars]
