"""
candle-engine - OHLCV resampling, range queries and progressive backfill.

Turns a dense per-second OHLCV series into bars of any supported timeframe,
serves repeated range queries from a cache, and extends chart sessions
backwards without duplicate or out-of-order bars.
"""

__version__ = "0.1.0"
