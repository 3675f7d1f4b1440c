"""Tests for logging setup."""

import io

import pytest
import structlog

from devgate.logging_config import configure_logging


@pytest.fixture(autouse=True)
def restore_structlog():
    yield
    structlog.reset_defaults()


def test_events_written_to_stream() -> None:
    """Verify events are rendered with their key/value context."""
    stream = io.StringIO()
    configure_logging("DEBUG", stream=stream)

    structlog.get_logger().info("command_executing", command="go test")

    output = stream.getvalue()
    assert "command_executing" in output
    assert "command='go test'" in output or "command=go test" in output


def test_level_filters_events() -> None:
    """Verify events below the configured level are dropped."""
    stream = io.StringIO()
    configure_logging("WARNING", stream=stream)

    logger = structlog.get_logger()
    logger.info("cache_hit")
    logger.warning("command_rejected")

    output = stream.getvalue()
    assert "cache_hit" not in output
    assert "command_rejected" in output
