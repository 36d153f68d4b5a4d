"""Shared fixtures for the shellenv test suite."""

import pytest

from shellenv.core.session_log import SessionLogger


@pytest.fixture(autouse=True)
def _fresh_session_logger():
    """Never leak the process-wide logger between tests."""
    SessionLogger.reset()
    yield
    SessionLogger.reset()


@pytest.fixture
def logger() -> SessionLogger:
    """An in-memory logger."""
    return SessionLogger()
