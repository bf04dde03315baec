"""
Popup Service Events

Event models and publisher for popup service.
"""

from .models import (
    PopupEventType,
    PopupViewedEventData,
    PopupConversionEventData,
)
from .publishers import PopupEventPublisher

__all__ = [
    # Event Types
    "PopupEventType",
    # Event Data Models
    "PopupViewedEventData",
    "PopupConversionEventData",
    # Publisher
    "PopupEventPublisher",
]
