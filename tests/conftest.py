from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest
import structlog

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by configure_logging (e.g. from CLI runs)."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
