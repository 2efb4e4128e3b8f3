"""
Shared pytest configuration.
"""

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration a test (e.g. the CLI callback) applied."""
    yield
    structlog.reset_defaults()
