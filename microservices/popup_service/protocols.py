"""
Popup Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Any, Callable, Dict, Optional, Protocol


# ====================
# Host Protocols
# ====================


class TimerHandleProtocol(Protocol):
    """Handle returned by a timer service"""

    def cancel(self) -> None:
        """Cancel the pending callback"""
        ...


class TimerServiceProtocol(Protocol):
    """Protocol for one-shot timers (asyncio loop or a manual test clock)"""

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> TimerHandleProtocol:
        """Schedule callback after delay seconds"""
        ...


class HostEnvironmentProtocol(Protocol):
    """Protocol for the page environment that delivers DOM-style events"""

    def add_listener(
        self, event_type: str, handler: Callable[[Any], None]
    ) -> Callable[[], None]:
        """Attach handler and return an idempotent remover"""
        ...


# ====================
# Storage Protocols
# ====================


class KeyValueStoreProtocol(Protocol):
    """Protocol for the key-value backend holding JSON documents"""

    def get(self, key: str) -> Optional[str]:
        """Get raw document by key"""
        ...

    def set(self, key: str, value: str) -> None:
        """Store raw document under key"""
        ...

    def delete(self, key: str) -> None:
        """Remove document"""
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus"""

    async def publish_event(self, event: Dict[str, Any]) -> None:
        """Publish an event"""
        ...


# ====================
# Custom Exceptions
# ====================


class PopupServiceError(Exception):
    """Base exception for popup service errors"""
    pass


class PopupValidationError(PopupServiceError):
    """Raised when a popup definition cannot be parsed"""

    def __init__(self, message: str, popup_id: Optional[str] = None):
        super().__init__(message)
        self.popup_id = popup_id


class StorageError(PopupServiceError):
    """Raised when the key-value backend fails"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class TriggerArmError(PopupServiceError):
    """Raised when a trigger cannot attach to the host environment"""
    pass


__all__ = [
    "TimerHandleProtocol",
    "TimerServiceProtocol",
    "HostEnvironmentProtocol",
    "KeyValueStoreProtocol",
    "EventBusProtocol",
    "PopupServiceError",
    "PopupValidationError",
    "StorageError",
    "TriggerArmError",
]
