"""
Popup Event Data Models

Event type definitions and data structures for popup service events.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class PopupEventType(str, Enum):
    """
    Events published by popup_service.

    Only views and conversions leave the engine; everything else is local
    state.
    """
    VIEW = "popup.view"
    CONVERSION = "popup.conversion"


# =============================================================================
# Event Data Models
# =============================================================================


class PopupViewedEventData(BaseModel):
    """Data for popup.view event"""
    popup_id: str
    popup_name: str = ""
    pathname: str
    language: str
    device: str
    display_count: int = Field(..., ge=1)
    session_count: int = Field(..., ge=1)
    timestamp: datetime


class PopupConversionEventData(BaseModel):
    """Data for popup.conversion event"""
    popup_id: str
    popup_name: str = ""
    conversion_event: Optional[str] = None
    pathname: str
    language: str
    timestamp: datetime


__all__ = [
    "PopupEventType",
    "PopupViewedEventData",
    "PopupConversionEventData",
]
