"""Exception hierarchy for the candle engine.

This module defines all custom exceptions used throughout the engine.
All exceptions inherit from CandleEngineError for easy catching and handling.
An empty query window is not an error and has no exception here; see
ClampedRange.is_empty.
"""

from typing import Any, Dict


class CandleEngineError(Exception):
    """Base exception for all candle engine errors.

    All custom exceptions in the engine inherit from this class,
    allowing callers at the transport boundary to catch any engine error.
    """

    def __init__(self, message: str, **context: Any):
        """Initialize the exception with a message and optional context.

        Args:
            message: Error message describing what went wrong
            **context: Additional context information for logging and debugging
        """
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        """Return string representation including context."""
        if self.context:
            ctx = ', '.join(f'{k}={v}' for k, v in self.context.items())
            return f"{super().__str__()} [{ctx}]"
        return super().__str__()


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigError(CandleEngineError):
    """Base class for configuration errors."""


class InvalidConfigError(ConfigError):
    """Raised when configuration contains invalid values.

    For example a negative span cap, a zero throttle window, or an unknown
    timeframe in the backfill timeframe list.
    """


class MissingConfigError(ConfigError):
    """Raised when the configuration file or a required section is missing."""


# ============================================================================
# Query Exceptions
# ============================================================================

class QueryError(CandleEngineError):
    """Base class for rejected queries.

    Query errors are raised synchronously, before any aggregation or cache
    work, and are never retried by the engine.
    """


class RangeTooLargeError(QueryError):
    """Raised when a clamped query window exceeds the span cap.

    The cap is measured in seconds of base data (end - start + 1), before
    aggregation, so it does not depend on the requested timeframe.
    """


class InvalidParametersError(QueryError):
    """Raised when query parameters are missing or out of range.

    Examples: a paginated query without start/end, a negative page, a
    non-positive page size or limit.
    """


class UnknownTimeframeError(InvalidParametersError):
    """Raised when a timeframe name is not in the supported set."""


class SeriesNotFoundError(QueryError):
    """Raised when no base series is loaded under the requested series id."""


# ============================================================================
# Transport Exceptions
# ============================================================================

class TransportFailureError(CandleEngineError):
    """Raised when fetching bars for a chart session fails.

    Backfill and initial-load fetch failures are caught at the session
    boundary and recorded as this error; previously loaded bars stay intact.
    """


# ============================================================================
# Data Exceptions
# ============================================================================

class DataError(CandleEngineError):
    """Base class for base-series data errors."""


class InvalidBarError(DataError):
    """Raised when a bar violates OHLCV integrity.

    Raised when high < max(open, close), low > min(open, close), a price is
    not strictly positive, or volume is negative.
    """


class SeriesLoadError(DataError):
    """Raised when a base series file cannot be read or parsed."""
