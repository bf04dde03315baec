"""
Page Environment

In-process stand-in for the browser window/document that the host feeds with
DOM-style events, plus timer services for the trigger scheduler.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .protocols import TimerHandleProtocol, TriggerArmError

logger = logging.getLogger(__name__)


# ====================
# Host Events
# ====================


@dataclass
class ScrollEvent:
    """Window scroll position and document geometry"""
    scroll_y: float
    scroll_height: float
    inner_height: float


@dataclass
class PointerEvent:
    """Pointer position relative to the viewport"""
    client_x: float = 0
    client_y: float = 0


@dataclass
class HostEvent:
    """Any other named event (keypress, touchstart, custom events)"""
    name: str
    detail: Dict[str, Any] = field(default_factory=dict)


# ====================
# Listener Registry
# ====================


class _Listener:
    __slots__ = ("handler",)

    def __init__(self, handler: Callable[[Any], None]):
        self.handler = handler


class PageEnvironment:
    """Listener registry and event dispatcher for one page"""

    def __init__(self):
        self._listeners: Dict[str, List[_Listener]] = defaultdict(list)

    def add_listener(
        self, event_type: str, handler: Callable[[Any], None]
    ) -> Callable[[], None]:
        """Attach handler; the returned remover is safe to call repeatedly"""
        if not event_type:
            raise TriggerArmError("Event type is required")

        entry = _Listener(handler)
        self._listeners[event_type].append(entry)

        def remove() -> None:
            listeners = self._listeners.get(event_type)
            if listeners and entry in listeners:
                listeners.remove(entry)
                if not listeners:
                    del self._listeners[event_type]

        return remove

    def dispatch(self, event_type: str, event: Any = None) -> int:
        """
        Deliver an event to every listener attached at dispatch time.

        Handler errors are logged and do not stop delivery. Returns the number
        of handlers invoked.
        """
        listeners = list(self._listeners.get(event_type, ()))
        for entry in listeners:
            try:
                entry.handler(event)
            except Exception as e:
                logger.error(f"Listener for {event_type} failed: {e}", exc_info=True)
        return len(listeners)

    def scroll(self, scroll_y: float, scroll_height: float, inner_height: float) -> int:
        return self.dispatch("scroll", ScrollEvent(scroll_y, scroll_height, inner_height))

    def mouse_out(self, client_y: float, client_x: float = 0) -> int:
        return self.dispatch("mouseout", PointerEvent(client_x=client_x, client_y=client_y))

    def emit(self, name: str, **detail: Any) -> int:
        return self.dispatch(name, HostEvent(name=name, detail=detail))

    def listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, ()))
        return sum(len(listeners) for listeners in self._listeners.values())

    def clear(self) -> None:
        self._listeners.clear()


# ====================
# Timer Services
# ====================


class AsyncioTimerService:
    """Timer service backed by the running asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> TimerHandleProtocol:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


__all__ = [
    "ScrollEvent",
    "PointerEvent",
    "HostEvent",
    "PageEnvironment",
    "AsyncioTimerService",
]
