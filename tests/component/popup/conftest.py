"""
Component Test Fixtures for Popup Service

Provides an engine wired to an in-process page environment, a manually
advanced timer service, a fake clock and in-memory stores.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config.engine_config import PopupEngineConfig
from microservices.popup_service.environment import PageEnvironment
from microservices.popup_service.events.publishers import PopupEventPublisher
from microservices.popup_service.popup_repository import PopupStateRepository
from microservices.popup_service.popup_service import PopupEngine
from microservices.popup_service.storage import InMemoryKeyValueStore


# ====================
# Clock and Timers
# ====================


class FakeClock:
    """Callable clock returning a controllable local time"""

    def __init__(self, start: Optional[datetime] = None):
        # Thursday
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ManualTimerHandle:
    """Handle for a timer registered with ManualTimerService"""

    def __init__(self, due: float, seq: int, callback: Callable[[], None]):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimerService:
    """Timer service that only fires when advanced"""

    def __init__(self):
        self.time = 0.0
        self._timers: List[ManualTimerHandle] = []
        self._seq = 0

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimerHandle:
        self._seq += 1
        handle = ManualTimerHandle(self.time + delay, self._seq, callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return len([t for t in self._timers if not t.cancelled])

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in (due, registration) order"""
        target = self.time + seconds
        while True:
            due = sorted(
                (t for t in self._timers if not t.cancelled and t.due <= target),
                key=lambda t: (t.due, t.seq),
            )
            if not due:
                break
            handle = due[0]
            self._timers.remove(handle)
            self.time = handle.due
            handle.callback()
        self.time = target
        self._timers = [t for t in self._timers if not t.cancelled]


# ====================
# Mock Event Bus
# ====================


class MockEventBus:
    """Mock event bus for component testing"""

    def __init__(self, fail: bool = False):
        self.published_events: List[Dict[str, Any]] = []
        self.fail = fail

    async def publish_event(self, event: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("event bus unavailable")
        self.published_events.append(event)

    def get_events_by_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.published_events if e["event_type"] == event_type]

    def clear_events(self):
        self.published_events = []


# ====================
# Fixtures
# ====================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return ManualTimerService()


@pytest.fixture
def environment():
    return PageEnvironment()


@pytest.fixture
def durable_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def session_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(durable_store, session_store):
    repository = PopupStateRepository(
        durable_store=durable_store,
        session_store=session_store,
        namespace="test",
    )
    repository.load()
    return repository


@pytest.fixture
def mock_event_bus():
    return MockEventBus()


@pytest.fixture
def event_publisher(mock_event_bus):
    return PopupEventPublisher(event_bus=mock_event_bus, source="popup_service")


@pytest.fixture
def engine(repository, environment, timers, event_publisher, clock):
    engine = PopupEngine(
        repository=repository,
        environment=environment,
        timers=timers,
        event_publisher=event_publisher,
        config=PopupEngineConfig(),
        clock=clock,
    )
    yield engine
    engine.close()


@pytest.fixture
def failing_event_bus():
    return MockEventBus(fail=True)
