"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/: Engine tests with a fake page environment and manual timers
    - unit/     : Pure predicate and model tests (no I/O)
"""
import os
import sys

import pytest

# Select the test environment file before any config import
os.environ.setdefault("ENV", "testing")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from tests.contracts.popup.data_contract import PopupTestDataFactory


# =============================================================================
# Test Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


@pytest.fixture
def factory() -> PopupTestDataFactory:
    """Provide popup test data factory"""
    return PopupTestDataFactory()
