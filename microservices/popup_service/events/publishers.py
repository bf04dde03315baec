"""
Popup Event Publishers

Publishes popup view and conversion events to the configured event bus.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..protocols import EventBusProtocol
from .models import (
    PopupConversionEventData,
    PopupEventType,
    PopupViewedEventData,
)

logger = logging.getLogger(__name__)


class PopupEventPublisher:
    """Publisher for popup service events"""

    def __init__(
        self,
        event_bus: Optional[EventBusProtocol] = None,
        source: str = "popup_service",
    ):
        self.event_bus = event_bus
        self.source = source

    async def publish(
        self,
        event_type: PopupEventType,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish an event to the event bus.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = {
                "event_type": event_type.value,
                "source": self.source,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": data,
            }

            await self.event_bus.publish_event(event)
            logger.debug(f"Published event: {event_type.value}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    async def publish_popup_viewed(
        self,
        popup_id: str,
        popup_name: str,
        pathname: str,
        language: str,
        device: str,
        display_count: int,
        session_count: int,
    ) -> bool:
        """Publish popup.view event"""
        data = PopupViewedEventData(
            popup_id=popup_id,
            popup_name=popup_name,
            pathname=pathname,
            language=language,
            device=device,
            display_count=display_count,
            session_count=session_count,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(PopupEventType.VIEW, data.model_dump(mode="json"))

    async def publish_popup_conversion(
        self,
        popup_id: str,
        popup_name: str,
        pathname: str,
        language: str,
        conversion_event: Optional[str] = None,
    ) -> bool:
        """Publish popup.conversion event"""
        data = PopupConversionEventData(
            popup_id=popup_id,
            popup_name=popup_name,
            conversion_event=conversion_event,
            pathname=pathname,
            language=language,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(PopupEventType.CONVERSION, data.model_dump(mode="json"))


__all__ = ["PopupEventPublisher"]
