"""
Component Tests for Popup Event Publishing

Tests popup.view and popup.conversion events emitted by the engine.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config.engine_config import PopupEngineConfig
from microservices.popup_service.events.models import PopupEventType
from microservices.popup_service.events.publishers import PopupEventPublisher
from microservices.popup_service.popup_service import PopupEngine


pytestmark = [pytest.mark.component]


class TestPopupViewedEvent:
    """popup.view"""

    @pytest.mark.asyncio
    async def test_view_published_when_tracked(self, engine, mock_event_bus, factory):
        """Test showing a trackViews popup publishes popup.view"""
        # Given: Popup with view tracking
        popup = engine.register_popup(
            factory.make_popup_document("welcome", name="Welcome", trackViews=True)
        )
        engine.navigate("/menu")

        # When: Showing it
        engine.show(popup)
        await engine.flush_events()

        # Then: One view event with the display context
        events = mock_event_bus.get_events_by_type(PopupEventType.VIEW.value)
        assert len(events) == 1
        event = events[0]
        assert event["source"] == "popup_service"
        assert "timestamp" in event
        assert event["data"]["popup_id"] == "welcome"
        assert event["data"]["popup_name"] == "Welcome"
        assert event["data"]["pathname"] == "/menu"
        assert event["data"]["language"] == "en"
        assert event["data"]["device"] == "desktop"
        assert event["data"]["display_count"] == 1
        assert event["data"]["session_count"] == 1

    @pytest.mark.asyncio
    async def test_view_not_published_when_untracked(self, engine, mock_event_bus, factory):
        """Test trackViews=false publishes nothing"""
        popup = engine.register_popup(factory.make_popup_document("welcome"))

        engine.show(popup)
        await engine.flush_events()

        assert mock_event_bus.published_events == []

    @pytest.mark.asyncio
    async def test_trigger_fired_view(self, engine, timers, mock_event_bus, factory):
        """Test a trigger-driven show publishes the same event"""
        engine.register_popup(factory.make_popup_document("welcome", trackViews=True))
        engine.navigate("/")

        timers.advance(0)
        await engine.flush_events()

        assert len(mock_event_bus.get_events_by_type("popup.view")) == 1


class TestPopupConversionEvent:
    """popup.conversion"""

    @pytest.mark.asyncio
    async def test_conversion_published_when_tracked(self, engine, mock_event_bus, factory):
        """Test track_conversion publishes popup.conversion for trackClicks popups"""
        popup = engine.register_popup(
            factory.make_popup_document(
                "reserve", trackClicks=True, conversionEvent="reservation_made"
            )
        )
        engine.show(popup)

        engine.track_conversion("reserve")
        await engine.flush_events()

        events = mock_event_bus.get_events_by_type(PopupEventType.CONVERSION.value)
        assert len(events) == 1
        assert events[0]["data"]["popup_id"] == "reserve"
        assert events[0]["data"]["conversion_event"] == "reservation_made"

    @pytest.mark.asyncio
    async def test_conversion_not_published_when_untracked(self, engine, mock_event_bus, factory):
        popup = engine.register_popup(factory.make_popup_document("reserve"))
        engine.show(popup)

        engine.track_conversion("reserve")
        await engine.flush_events()

        assert mock_event_bus.get_events_by_type("popup.conversion") == []
        assert engine.get_popup_stats("reserve").converted is True


class TestPublishFailures:
    """Event delivery never breaks the engine"""

    @pytest.mark.asyncio
    async def test_bus_failure_is_swallowed(
        self, repository, environment, timers, clock, failing_event_bus, factory
    ):
        """Test a failing bus leaves the popup shown and recorded"""
        engine = PopupEngine(
            repository=repository,
            environment=environment,
            timers=timers,
            event_publisher=PopupEventPublisher(event_bus=failing_event_bus),
            config=PopupEngineConfig(),
            clock=clock,
        )
        popup = engine.register_popup(factory.make_popup_document("welcome", trackViews=True))

        assert engine.show(popup) is True
        await engine.flush_events()

        assert engine.active_popup is popup
        assert engine.get_popup_stats("welcome").display_count == 1

    @pytest.mark.asyncio
    async def test_publisher_without_bus(self):
        publisher = PopupEventPublisher()
        result = await publisher.publish_popup_conversion(
            popup_id="p1", popup_name="", pathname="/", language="en"
        )
        assert result is False

    @pytest.mark.asyncio
    async def test_publisher_failure_returns_false(self, failing_event_bus):
        publisher = PopupEventPublisher(event_bus=failing_event_bus)
        result = await publisher.publish_popup_viewed(
            popup_id="p1",
            popup_name="",
            pathname="/",
            language="en",
            device="mobile",
            display_count=1,
            session_count=1,
        )
        assert result is False

    def test_show_without_event_loop(self, engine, mock_event_bus, factory):
        """Test events are skipped outside a running loop"""
        popup = engine.register_popup(factory.make_popup_document("welcome", trackViews=True))

        assert engine.show(popup) is True
        assert mock_event_bus.published_events == []
