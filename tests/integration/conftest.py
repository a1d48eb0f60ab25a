"""
Pytest configuration and fixtures for integration tests.
"""

import logging
import pytest

from candle_engine.core.config import EngineConfig
from candle_engine.main import CandleEngine


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: End-to-end tests across engine, sessions and CLI"
    )


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """
    Setup logging for all tests.

    Runs automatically so log output is captured and shown on failure.
    """
    caplog.set_level(logging.INFO)

    # Set specific loggers to appropriate levels
    logging.getLogger('candle_engine.session').setLevel(logging.INFO)
    logging.getLogger('candle_engine.data.query_cache').setLevel(logging.WARNING)

    yield

    # main() installs a stdout handler on the package logger
    package_logger = logging.getLogger('candle_engine')
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark all tests in the integration directory as
    'integration' tests.
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def engine(long_series):
    """Engine over two hours of sample data with throttling disabled."""
    config = EngineConfig(series_id="tok", data_file=None, throttle_ms=0.0)
    return CandleEngine(config, series=long_series)
