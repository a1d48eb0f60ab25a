"""
Loader - Read and write base series files.

File format (JSON)::

    {
      "price":     [{"time": ..., "open": ..., "high": ..., "low": ...,
                     "close": ..., "volume": ...}, ...],
      "marketCap": [...same shape...],
      "metadata":  {"startTime": ..., "endTime": ...}
    }
"""

from pathlib import Path
from typing import Optional, Union
import json

import pandas as pd

from ..core.constants import SAMPLE_NOW, SAMPLE_SECONDS, SeriesType
from ..core.exceptions import SeriesLoadError
from ..core.types import BAR_COLUMNS, Series, SeriesMetadata, empty_frame
from ..monitoring.logger import get_logger
from .data_validator import DataValidator
from .sample_data import generate_sample_series

logger = get_logger(__name__)


def _rows_to_frame(rows, key: str, validator: DataValidator) -> pd.DataFrame:
    if not isinstance(rows, list):
        raise SeriesLoadError(f"'{key}' must be a list of bars", key=key)
    if not rows:
        return empty_frame()

    frame = pd.DataFrame(rows)
    missing = {'time', 'open', 'high', 'low', 'close'} - set(frame.columns)
    if missing:
        raise SeriesLoadError(f"'{key}' bars missing fields: {sorted(missing)}", key=key)

    clean, dropped = validator.clean(frame)
    if dropped:
        logger.warning("Dropped invalid bars", series=key, dropped=dropped, kept=len(clean))
    return clean


def load_series_file(path: Union[str, Path]) -> Series:
    """
    Load a base series from a JSON file.

    Invalid rows are dropped with a warning; duplicate timestamps keep the
    last row.

    Raises:
        SeriesLoadError: If the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SeriesLoadError(f"Cannot read series file: {e}", path=str(path)) from e

    if not isinstance(payload, dict):
        raise SeriesLoadError("Series file must contain a JSON object", path=str(path))

    validator = DataValidator()
    price = _rows_to_frame(payload.get('price', []), 'price', validator)
    market_cap = _rows_to_frame(payload.get('marketCap', []), 'marketCap', validator)

    metadata = None
    meta = payload.get('metadata')
    if meta:
        try:
            metadata = SeriesMetadata(
                start_time=int(meta['startTime']),
                end_time=int(meta['endTime'])
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SeriesLoadError(f"Invalid metadata: {e}", path=str(path)) from e
    elif price.empty:
        raise SeriesLoadError("Series file has no price bars and no metadata", path=str(path))

    series = Series(price, market_cap, metadata)
    logger.info("Loaded series file", path=str(path), seconds=len(series))
    return series


def save_series_file(series: Series, path: Union[str, Path]) -> Path:
    """Write ``series`` in the loader's JSON format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        'price': series.frame(SeriesType.PRICE)[BAR_COLUMNS].to_dict(orient='records'),
        'marketCap': series.frame(SeriesType.MARKET_CAP)[BAR_COLUMNS].to_dict(orient='records'),
        'metadata': series.metadata.to_dict(),
    }
    with open(path, 'w') as f:
        json.dump(payload, f, default=int)

    return path


def load_series(
    path: Optional[Union[str, Path]],
    fallback_seconds: int = SAMPLE_SECONDS,
    now: int = SAMPLE_NOW,
    seed: Optional[int] = None
) -> Series:
    """
    Load a series file, falling back to generated sample data.

    The fallback is used only when the file does not exist; a file that
    exists but is malformed raises SeriesLoadError.
    """
    if path is not None and Path(path).exists():
        return load_series_file(path)

    logger.warning(
        "Series file not found, using generated sample data",
        path=str(path),
        seconds=fallback_seconds
    )
    return generate_sample_series(seconds=fallback_seconds, now=now, seed=seed)
