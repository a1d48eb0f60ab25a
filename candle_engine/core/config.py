"""
Engine configuration loaded from YAML.

Every key is optional; missing keys fall back to the defaults in
``core.constants``. See ``config/config.yaml`` for the full layout.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

import yaml

from .constants import (
    BACKFILL_EDGE_THRESHOLD_BARS,
    BACKFILL_THROTTLE_MS,
    BACKFILL_TIMEFRAMES,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_LIMIT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_WINDOW_BARS,
    MAX_SPAN_SECONDS,
    SAMPLE_NOW,
    SAMPLE_SECONDS,
    TIMEFRAME_SECONDS,
)
from .exceptions import InvalidConfigError, MissingConfigError


@dataclass(frozen=True)
class EngineConfig:
    """Resolved engine configuration."""
    # data
    series_id: str = "default"
    data_file: Optional[str] = "data/candles.json"
    sample_seconds: int = SAMPLE_SECONDS
    sample_now: int = SAMPLE_NOW
    sample_seed: Optional[int] = None

    # query
    max_span_seconds: int = MAX_SPAN_SECONDS
    default_limit: int = DEFAULT_LIMIT
    default_page_size: int = DEFAULT_PAGE_SIZE

    # cache
    cache_max_entries: Optional[int] = DEFAULT_CACHE_MAX_ENTRIES

    # backfill
    edge_threshold_bars: int = BACKFILL_EDGE_THRESHOLD_BARS
    throttle_ms: float = BACKFILL_THROTTLE_MS
    backfill_timeframes: FrozenSet[str] = BACKFILL_TIMEFRAMES
    fetch_timeout: Optional[float] = None
    window_bars: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_WINDOW_BARS))

    # monitoring
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def backfill_options(self) -> Dict[str, Any]:
        """Keyword arguments for BackfillController."""
        return {
            'edge_threshold_bars': self.edge_threshold_bars,
            'throttle_ms': self.throttle_ms,
            'enabled_timeframes': self.backfill_timeframes,
            'fetch_timeout': self.fetch_timeout,
        }


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, Mapping):
        raise InvalidConfigError(f"Section '{name}' must be a mapping", section=name)
    return value


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfigError(f"{key} must be a positive integer", key=key, value=value)
    return value


def _timeframes(values: Any, key: str) -> FrozenSet[str]:
    if not isinstance(values, (list, tuple)):
        raise InvalidConfigError(f"{key} must be a list of timeframes", key=key)
    unknown = [v for v in values if v not in TIMEFRAME_SECONDS]
    if unknown:
        raise InvalidConfigError(f"{key} contains unknown timeframes", key=key, unknown=unknown)
    return frozenset(values)


def parse_config(config: Optional[Mapping[str, Any]]) -> EngineConfig:
    """
    Build an EngineConfig from a parsed YAML mapping.

    Raises:
        InvalidConfigError: If a value has the wrong type or range
    """
    config = config or {}
    if not isinstance(config, Mapping):
        raise InvalidConfigError("Configuration root must be a mapping")

    data = _section(config, 'data')
    query = _section(config, 'query')
    cache = _section(config, 'cache')
    backfill = _section(config, 'backfill')
    monitoring = _section(config, 'monitoring')
    defaults = EngineConfig()

    cache_max = cache.get('max_entries', defaults.cache_max_entries)
    if cache_max is not None:
        cache_max = _positive_int(cache_max, 'cache.max_entries')

    throttle_ms = backfill.get('throttle_ms', defaults.throttle_ms)
    if isinstance(throttle_ms, bool) or not isinstance(throttle_ms, (int, float)) or throttle_ms < 0:
        raise InvalidConfigError("backfill.throttle_ms must be >= 0", value=throttle_ms)

    fetch_timeout = backfill.get('fetch_timeout_seconds', defaults.fetch_timeout)
    if fetch_timeout is not None and (
        isinstance(fetch_timeout, bool) or not isinstance(fetch_timeout, (int, float)) or fetch_timeout <= 0
    ):
        raise InvalidConfigError("backfill.fetch_timeout_seconds must be positive", value=fetch_timeout)

    window_bars = dict(defaults.window_bars)
    for tf, bars in (backfill.get('window_bars') or {}).items():
        if tf not in TIMEFRAME_SECONDS:
            raise InvalidConfigError("backfill.window_bars has an unknown timeframe", timeframe=tf)
        window_bars[tf] = _positive_int(bars, f'backfill.window_bars.{tf}')

    seed = data.get('sample_seed', defaults.sample_seed)
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise InvalidConfigError("data.sample_seed must be an integer", value=seed)

    return EngineConfig(
        series_id=str(data.get('series_id', defaults.series_id)),
        data_file=data.get('file', defaults.data_file),
        sample_seconds=_positive_int(data.get('sample_seconds', defaults.sample_seconds), 'data.sample_seconds'),
        sample_now=int(data.get('sample_now', defaults.sample_now)),
        sample_seed=seed,
        max_span_seconds=_positive_int(
            query.get('max_span_seconds', defaults.max_span_seconds), 'query.max_span_seconds'
        ),
        default_limit=_positive_int(query.get('default_limit', defaults.default_limit), 'query.default_limit'),
        default_page_size=_positive_int(
            query.get('default_page_size', defaults.default_page_size), 'query.default_page_size'
        ),
        cache_max_entries=cache_max,
        edge_threshold_bars=_positive_int(
            backfill.get('edge_threshold_bars', defaults.edge_threshold_bars), 'backfill.edge_threshold_bars'
        ),
        throttle_ms=float(throttle_ms),
        backfill_timeframes=_timeframes(
            backfill.get('timeframes', sorted(defaults.backfill_timeframes)), 'backfill.timeframes'
        ),
        fetch_timeout=float(fetch_timeout) if fetch_timeout is not None else None,
        window_bars=window_bars,
        log_level=str(monitoring.get('log_level', defaults.log_level)).upper(),
        log_file=monitoring.get('log_file', defaults.log_file),
    )


def load_config(config_file: Union[str, Path] = "config/config.yaml") -> EngineConfig:
    """
    Load configuration from a YAML file.

    Raises:
        MissingConfigError: If the file does not exist
        InvalidConfigError: If the file is not valid YAML or has bad values
    """
    path = Path(config_file)
    if not path.exists():
        raise MissingConfigError(f"Configuration file not found: {path}", path=str(path))

    try:
        with open(path, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Invalid YAML: {e}", path=str(path)) from e

    return parse_config(raw)
