"""Monitoring module for logging and metrics."""

from .logger import get_logger, setup_logger, EngineLogger
from .metrics_tracker import MetricsTracker

__all__ = [
    "get_logger",
    "setup_logger",
    "EngineLogger",
    "MetricsTracker",
]
