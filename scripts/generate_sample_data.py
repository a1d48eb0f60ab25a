#!/usr/bin/env python3
"""
Generate Sample Series File.

Creates a synthetic per-second price / market-cap series and writes it in
the format read by the engine's loader (data/candles.json by default).

Usage:
    python scripts/generate_sample_data.py --seconds 86400 --seed 7
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for proper imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from candle_engine.core.constants import SAMPLE_BASE_PRICE, SAMPLE_NOW, SAMPLE_SUPPLY, SeriesType
from candle_engine.data.loader import save_series_file
from candle_engine.data.sample_data import generate_sample_series


def main():
    parser = argparse.ArgumentParser(description="Generate a sample base series file")
    parser.add_argument("--output", default="data/candles.json", help="Output JSON file")
    parser.add_argument("--seconds", type=int, default=86400, help="Number of 1-second bars")
    parser.add_argument("--now", type=int, default=SAMPLE_NOW, help="Time of the last bar (unix seconds)")
    parser.add_argument("--base-price", type=float, default=SAMPLE_BASE_PRICE)
    parser.add_argument("--supply", type=float, default=SAMPLE_SUPPLY, help="Market cap = price * supply")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    print("Generating sample series...")
    series = generate_sample_series(
        seconds=args.seconds,
        now=args.now,
        base_price=args.base_price,
        supply=args.supply,
        seed=args.seed
    )

    output_file = save_series_file(series, args.output)
    price = series.frame(SeriesType.PRICE)

    print(f"✓ Saved to: {output_file}")
    print(f"  Bars: {len(series)}")
    print(f"  Time range: {series.origin} to {series.now}")
    print(f"  Price range: {price['low'].min():.6f} to {price['high'].max():.6f}")

    print("\nYou can now query candles:")
    print(f"  candle-engine candles --tf 1m --limit 50")


if __name__ == "__main__":
    main()
