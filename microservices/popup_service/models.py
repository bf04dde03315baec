"""
Popup Service Data Models

Canonical data structures for the popup targeting engine. Field names follow
the camelCase JSON documents produced by the popup authoring tool; Python
attributes are snake_case.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .base import BaseContract, LenientContract
from .triggers import (
    KNOWN_TRIGGER_TYPES,
    ButtonClickTrigger,
    CustomEventTrigger,
    ExitIntentTrigger,
    InactivityTrigger,
    PageLoadTrigger,
    ScrollDepthTrigger,
    TimeDelayTrigger,
    Trigger,
    TriggerType,
    UnsupportedTrigger,
)

TIME_PATTERN = r"^([01]?\d|2[0-3]):[0-5]\d$"

logger = logging.getLogger(__name__)


def _restriction(field: str, value: Any, convert: Callable[[Any], Any]) -> Any:
    """
    Keep the valid entries of a restriction list.

    An absent or empty list is no restriction (None). Invalid entries are
    dropped and logged; a list left with no valid entries restricts to
    nothing.
    """
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        logger.warning(f"Invalid {field} restriction: {value!r}, matching nothing")
        return []
    if not value:
        return None
    kept = []
    for item in value:
        try:
            kept.append(convert(item))
        except (TypeError, ValueError):
            logger.warning(f"Dropping invalid {field} entry: {item!r}")
    return kept


def _text(item: Any) -> str:
    if not isinstance(item, str):
        raise TypeError(f"expected string, got {type(item).__name__}")
    return item


def _weekday(item: Any) -> int:
    if isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 6:
        raise ValueError(f"weekday out of range: {item!r}")
    return item


# =============================================================================
# ENUMS
# =============================================================================

class DeviceType(str, Enum):
    """Device class derived from viewport width"""
    MOBILE = "mobile"
    DESKTOP = "desktop"


class SchedulerState(str, Enum):
    """Trigger scheduler state for the current page view"""
    IDLE = "idle"
    LISTENERS_ARMED = "listeners_armed"
    POPUP_ACTIVE = "popup_active"


# =============================================================================
# POPUP DEFINITION
# =============================================================================

class PopupTargeting(LenientContract):
    """
    Page/device/language restrictions.

    None (or an empty list in the document) means no restriction on that
    axis. Invalid entries are dropped; a list with no valid entries left
    matches nothing.
    """
    pages: Optional[List[str]] = Field(None, description="Path patterns to show on")
    exclude_pages: Optional[List[str]] = Field(None, alias="excludePages")
    devices: Optional[List[DeviceType]] = None
    languages: Optional[List[str]] = None

    @field_validator("pages", "exclude_pages", "languages", mode="before")
    @classmethod
    def _valid_strings(cls, v: Any, info: ValidationInfo) -> Any:
        return _restriction(info.field_name, v, _text)

    @field_validator("devices", mode="before")
    @classmethod
    def _valid_devices(cls, v: Any) -> Any:
        return _restriction("devices", v, DeviceType)


class PopupSchedule(LenientContract):
    """Date/day/time-of-day activation window"""
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    days_of_week: Optional[List[Annotated[int, Field(ge=0, le=6)]]] = Field(
        None, alias="daysOfWeek", description="0=Sun..6=Sat"
    )
    start_time: Optional[str] = Field(None, alias="startTime", pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, alias="endTime", pattern=TIME_PATTERN)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _valid_weekdays(cls, v: Any) -> Any:
        return _restriction("daysOfWeek", v, _weekday)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_part(cls, v: Any) -> Any:
        # Authoring tools send full ISO timestamps for date-only bounds
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v


class PopupFrequency(LenientContract):
    """Per-visitor display limits; None disables a limit"""
    max_displays_per_session: Optional[int] = Field(1, ge=0, alias="maxDisplaysPerSession")
    max_displays_per_day: Optional[int] = Field(3, ge=0, alias="maxDisplaysPerDay")
    max_displays_total: Optional[int] = Field(None, ge=0, alias="maxDisplaysTotal")
    cooldown_minutes: Optional[float] = Field(5, ge=0, alias="cooldownMinutes")


class Popup(LenientContract):
    """Targeted and scheduled promotional overlay definition"""
    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    active: bool = Field(default=False)
    priority: int = Field(default=0, description="Higher shows first")
    trigger: Trigger = Field(default_factory=UnsupportedTrigger)
    targeting: Optional[PopupTargeting] = None
    schedule: Optional[PopupSchedule] = None
    frequency: PopupFrequency = Field(default_factory=PopupFrequency)
    track_views: bool = Field(default=False, alias="trackViews")
    track_clicks: bool = Field(default=False, alias="trackClicks")
    conversion_event: Optional[str] = Field(None, alias="conversionEvent")

    @model_validator(mode="before")
    @classmethod
    def _normalize_trigger(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        trigger = data.get("trigger")
        if isinstance(trigger, dict) and trigger.get("type") not in KNOWN_TRIGGER_TYPES:
            data = dict(data)
            data["trigger"] = {"type": "unsupported", "originalType": trigger.get("type")}
        return data

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType(self.trigger.type)


# =============================================================================
# DISPLAY STATE
# =============================================================================

class DisplayState(BaseContract):
    """Durable per-popup display history"""
    popup_id: str = Field(..., alias="popupId")
    display_count: int = Field(default=0, ge=0, alias="displayCount")
    last_displayed: Optional[datetime] = Field(None, alias="lastDisplayed")
    dismissed: bool = Field(default=False)
    converted: bool = Field(default=False)
    # Per-ISO-day display counter; only the current day is kept
    daily_date: Optional[date] = Field(None, alias="dailyDate")
    daily_count: int = Field(default=0, ge=0, alias="dailyCount")

    @field_validator("last_displayed")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def displays_on(self, day: date) -> int:
        """Displays recorded on the given calendar day"""
        return self.daily_count if self.daily_date == day else 0

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "DisplayState":
        return cls.model_validate(document)


# =============================================================================
# PAGE CONTEXT
# =============================================================================

class PageContext(BaseContract):
    """Current page as seen by the engine"""
    pathname: str = Field(default="/")
    language: str = Field(default="en")
    viewport_width: int = Field(default=1024, ge=0)
    mobile_breakpoint: int = Field(default=768, ge=0)

    @property
    def device(self) -> DeviceType:
        if self.viewport_width < self.mobile_breakpoint:
            return DeviceType.MOBILE
        return DeviceType.DESKTOP


__all__ = [
    # Enums
    "DeviceType",
    "SchedulerState",
    "TriggerType",
    # Triggers
    "PageLoadTrigger",
    "TimeDelayTrigger",
    "ScrollDepthTrigger",
    "ExitIntentTrigger",
    "InactivityTrigger",
    "ButtonClickTrigger",
    "CustomEventTrigger",
    "UnsupportedTrigger",
    # Popup definition
    "PopupTargeting",
    "PopupSchedule",
    "PopupFrequency",
    "Popup",
    # State
    "DisplayState",
    "PageContext",
]
