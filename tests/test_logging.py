"""Tests for logging utilities."""

import logging
from io import StringIO

import numpy as np

from hybridfit.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)
from hybridfit.optimize import HybridOptimizer, ResidualObjective


def test_get_logger_returns_logger():
    """Test that get_logger returns a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name.startswith("hybridfit.")


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    assert get_logger("test_module") is get_logger("test_module")


def test_get_logger_keeps_package_names():
    """Module names already inside the package are not prefixed twice."""
    assert get_logger("hybridfit.optimize.hybrid").name == "hybridfit.optimize.hybrid"
    assert get_logger().name == "hybridfit"


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")
    try:
        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG
        set_log_level("ERROR")
        assert logger.level == logging.ERROR
    finally:
        set_log_level(logging.WARNING)


def test_configure_logging_captures_output():
    """Test configure_logging redirects existing loggers to a stream."""
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        get_logger("test_module").debug("Debug message")
        assert "Debug message" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    assert get_logger("test_module").propagate is False


def test_optimizer_logs_run_outcome():
    """The optimizer reports how a run ended at INFO level."""
    stream = StringIO()
    t = np.linspace(0.0, 1.0, 8)
    y = np.where(t > 0.5, 1.0, -1.0)
    obj = ResidualObjective(lambda x: x[0] * t + x[1] - y, 2)
    try:
        configure_logging(level=logging.INFO, stream=stream)
        HybridOptimizer(obj, np.array([5.0, 5.0])).run()
        assert "hybridfit.optimize.hybrid" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)
