"""Pytest configuration shared by the unit and integration tests."""

import logging
import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture library logs at DEBUG so failures show the full trail."""
    caplog.set_level(logging.DEBUG, logger="hr_assistant")
    yield
