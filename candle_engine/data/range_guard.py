"""
Range Guard - Validate and clamp query windows.

The start is clamped up to the dataset origin. The end is not clamped:
callers may ask for windows ending at "now" or later. The span cap is checked
on the clamped window, in seconds of base data.
"""

from ..core.constants import MAX_SPAN_SECONDS
from ..core.exceptions import InvalidConfigError, RangeTooLargeError
from ..core.types import ClampedRange


def clamp(
    requested_start: int,
    requested_end: int,
    dataset_origin: int,
    dataset_now: int,
    max_span_seconds: int = MAX_SPAN_SECONDS
) -> ClampedRange:
    """
    Clamp a requested window against the dataset bounds.

    Args:
        requested_start: Requested first second (inclusive)
        requested_end: Requested last second (inclusive)
        dataset_origin: First second of the loaded dataset
        dataset_now: Last second of the loaded dataset
        max_span_seconds: Maximum allowed clamped width in seconds

    Returns:
        ClampedRange; ``is_empty`` is True when start > end after clamping

    Raises:
        RangeTooLargeError: If end - start + 1 exceeds max_span_seconds
    """
    start = max(int(requested_start), int(dataset_origin))
    end = int(requested_end)

    window = ClampedRange(start=start, end=end)
    if window.is_empty:
        return window

    if window.span_seconds > max_span_seconds:
        raise RangeTooLargeError(
            "range too large",
            start=start,
            end=end,
            span=window.span_seconds,
            max_span=max_span_seconds,
            dataset_now=dataset_now
        )

    return window


class RangeGuard:
    """
    Range guard bound to one loaded dataset.
    """

    def __init__(
        self,
        dataset_origin: int,
        dataset_now: int,
        max_span_seconds: int = MAX_SPAN_SECONDS
    ):
        """
        Initialize range guard.

        Args:
            dataset_origin: First second of the loaded dataset
            dataset_now: Last second of the loaded dataset
            max_span_seconds: Span cap in seconds
        """
        if max_span_seconds <= 0:
            raise InvalidConfigError(
                "max_span_seconds must be positive",
                max_span_seconds=max_span_seconds
            )
        self.dataset_origin = int(dataset_origin)
        self.dataset_now = int(dataset_now)
        self.max_span_seconds = int(max_span_seconds)

    def clamp(self, requested_start: int, requested_end: int) -> ClampedRange:
        """Clamp a requested window (see module-level ``clamp``)."""
        return clamp(
            requested_start,
            requested_end,
            self.dataset_origin,
            self.dataset_now,
            self.max_span_seconds
        )
