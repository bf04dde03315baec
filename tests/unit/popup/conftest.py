"""
Unit Test Fixtures for Popup Service

Pure predicate tests run against a fixed local time.
"""

import pytest
from datetime import datetime, timezone

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))


# Thursday 2026-01-15 12:00 UTC
FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time"""
    return FIXED_NOW
