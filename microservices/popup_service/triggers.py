"""
Popup Triggers

Each trigger variant knows how to attach itself to the page environment.
``arm(ctx)`` installs whatever timers and listeners the variant needs and
returns a cancel callable, or ``None`` when the variant never arms on its own.
The scheduler only ever talks to this contract.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, List, Literal, Optional, Union

from pydantic import Field, ValidationInfo, field_validator

from .base import BaseContract, fallback_to_default
from .protocols import HostEnvironmentProtocol, TimerServiceProtocol


Cancel = Callable[[], None]

# Host events that count as visitor activity for inactivity triggers
ACTIVITY_EVENTS = ("mousemove", "keypress", "scroll", "touchstart")


class TriggerType(str, Enum):
    """Condition that prompts a popup evaluation"""
    PAGE_LOAD = "page_load"
    TIME_DELAY = "time_delay"
    SCROLL_DEPTH = "scroll_depth"
    EXIT_INTENT = "exit_intent"
    INACTIVITY = "inactivity"
    BUTTON_CLICK = "button_click"
    CUSTOM_EVENT = "custom_event"
    UNSUPPORTED = "unsupported"


@dataclass
class TriggerContext:
    """Everything a trigger needs to arm itself for one popup"""
    environment: HostEnvironmentProtocol
    timers: TimerServiceProtocol
    fire: Callable[[], None]


def _arm_timer(delay: float, ctx: TriggerContext) -> Cancel:
    handle = ctx.timers.call_later(delay, ctx.fire)
    return handle.cancel


class TriggerBase(BaseContract):
    """
    Common base for trigger variants.

    Malformed parameters fall back to their defaults. The ``type``
    discriminator is left to the union.
    """

    @field_validator(
        "delay",
        "scroll_depth",
        "inactivity_time",
        "element_selector",
        "event_name",
        "original_type",
        mode="wrap",
        check_fields=False,
    )
    @classmethod
    def _fallback_to_default(cls, value: Any, handler, info: ValidationInfo) -> Any:
        return fallback_to_default(cls, value, handler, info)

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        return None


class PageLoadTrigger(TriggerBase):
    """Show shortly after the page loads"""
    type: Literal["page_load"] = "page_load"
    delay: float = Field(default=0, ge=0, description="Seconds after load")

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        return _arm_timer(self.delay, ctx)


class TimeDelayTrigger(TriggerBase):
    """Show after the visitor has spent some time on the page"""
    type: Literal["time_delay"] = "time_delay"
    delay: float = Field(default=5, ge=0, description="Seconds on page")

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        return _arm_timer(self.delay, ctx)


class ScrollDepthTrigger(TriggerBase):
    """Show once the visitor scrolls past a percentage of the page"""
    type: Literal["scroll_depth"] = "scroll_depth"
    scroll_depth: float = Field(default=50, ge=0, le=100, alias="scrollDepth")

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        remove: Optional[Cancel] = None

        def on_scroll(event) -> None:
            scrollable = event.scroll_height - event.inner_height
            # Nothing to scroll through
            if scrollable <= 0:
                return
            percent = event.scroll_y / scrollable * 100
            if percent >= self.scroll_depth:
                remove()
                ctx.fire()

        remove = ctx.environment.add_listener("scroll", on_scroll)
        return remove


class ExitIntentTrigger(TriggerBase):
    """Show when the pointer leaves through the top of the viewport"""
    type: Literal["exit_intent"] = "exit_intent"

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        remove: Optional[Cancel] = None

        def on_mouseout(event) -> None:
            if event.client_y <= 0:
                remove()
                ctx.fire()

        remove = ctx.environment.add_listener("mouseout", on_mouseout)
        return remove


class InactivityTrigger(TriggerBase):
    """Show after a period without movement, typing, scrolling or touch"""
    type: Literal["inactivity"] = "inactivity"
    inactivity_time: float = Field(default=30, gt=0, alias="inactivityTime")

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        pending = None

        def reset(_event=None) -> None:
            nonlocal pending
            if pending is not None:
                pending.cancel()
            pending = ctx.timers.call_later(self.inactivity_time, ctx.fire)

        removers: List[Cancel] = [
            ctx.environment.add_listener(event_type, reset)
            for event_type in ACTIVITY_EVENTS
        ]
        reset()

        def cancel() -> None:
            for remove in removers:
                remove()
            if pending is not None:
                pending.cancel()

        return cancel


class ButtonClickTrigger(TriggerBase):
    """Shown only through an explicit manual trigger"""
    type: Literal["button_click"] = "button_click"
    element_selector: Optional[str] = Field(None, alias="elementSelector")


class CustomEventTrigger(TriggerBase):
    """Show when the host dispatches a named event"""
    type: Literal["custom_event"] = "custom_event"
    event_name: Optional[str] = Field(None, alias="eventName")

    def arm(self, ctx: TriggerContext) -> Optional[Cancel]:
        if not self.event_name:
            return None
        remove: Optional[Cancel] = None

        def on_event(_event) -> None:
            remove()
            ctx.fire()

        remove = ctx.environment.add_listener(self.event_name, on_event)
        return remove


class UnsupportedTrigger(TriggerBase):
    """Placeholder for trigger types this engine does not know; never arms"""
    type: Literal["unsupported"] = "unsupported"
    original_type: Optional[str] = Field(None, alias="originalType")


Trigger = Annotated[
    Union[
        PageLoadTrigger,
        TimeDelayTrigger,
        ScrollDepthTrigger,
        ExitIntentTrigger,
        InactivityTrigger,
        ButtonClickTrigger,
        CustomEventTrigger,
        UnsupportedTrigger,
    ],
    Field(discriminator="type"),
]

KNOWN_TRIGGER_TYPES = frozenset(
    t.value for t in TriggerType if t is not TriggerType.UNSUPPORTED
)


__all__ = [
    "ACTIVITY_EVENTS",
    "TriggerType",
    "TriggerContext",
    "TriggerBase",
    "PageLoadTrigger",
    "TimeDelayTrigger",
    "ScrollDepthTrigger",
    "ExitIntentTrigger",
    "InactivityTrigger",
    "ButtonClickTrigger",
    "CustomEventTrigger",
    "UnsupportedTrigger",
    "Trigger",
    "KNOWN_TRIGGER_TYPES",
]
