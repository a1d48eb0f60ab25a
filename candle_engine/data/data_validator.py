"""
Data Validator - Validates loaded base bars.

Detects:
- Missing or non-numeric OHLC values
- Invalid OHLC (high below body, low above body)
- Non-positive prices
- Negative volume
"""

from typing import Tuple

import pandas as pd

from ..core.types import BAR_COLUMNS


class DataValidator:
    """Validates bar data quality before it becomes a base series."""

    def valid_mask(self, frame: pd.DataFrame) -> pd.Series:
        """
        Row-wise validity of a bar DataFrame.

        Returns:
            Boolean Series aligned with ``frame``; True rows satisfy every
            Bar invariant
        """
        cols = {c: pd.to_numeric(frame[c], errors='coerce') for c in BAR_COLUMNS if c in frame}
        if len(cols) < len(BAR_COLUMNS):
            return pd.Series(False, index=frame.index)

        o, h, l, c = cols['open'], cols['high'], cols['low'], cols['close']
        mask = cols['time'].notna() & o.notna() & h.notna() & l.notna() & c.notna()

        # All prices must be positive
        mask &= (o > 0) & (h > 0) & (l > 0) & (c > 0)

        # High must be highest price, low must be lowest price
        mask &= h >= pd.concat([o, c], axis=1).max(axis=1)
        mask &= l <= pd.concat([o, c], axis=1).min(axis=1)

        # Volume should be non-negative
        mask &= cols['volume'].fillna(0) >= 0

        return mask.fillna(False).astype(bool)

    def clean(self, frame: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
        """
        Drop invalid rows, sort by time and drop duplicate timestamps.

        Duplicates keep the last occurrence.

        Returns:
            (clean frame, number of rows dropped)
        """
        if frame.empty:
            return frame, 0

        if 'volume' not in frame:
            frame = frame.assign(volume=0)
        else:
            frame = frame.assign(volume=frame['volume'].fillna(0))

        valid = frame[self.valid_mask(frame)]
        valid = valid.sort_values('time', kind='stable')
        valid = valid[~valid['time'].duplicated(keep='last')]

        return valid.reset_index(drop=True), len(frame) - len(valid)
