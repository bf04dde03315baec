"""
Popup Service Business Logic

Owns the popup registry, the current page context and the single active
popup. Wires the candidate selector, trigger scheduler, state repository and
event publisher together.
"""

import asyncio
import logging
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from core.config.engine_config import PopupEngineConfig

from .eligibility import CandidateSelector
from .environment import AsyncioTimerService, PageEnvironment
from .events.publishers import PopupEventPublisher
from .models import DisplayState, PageContext, Popup, SchedulerState, TriggerType
from .popup_repository import PopupStateRepository
from .protocols import (
    HostEnvironmentProtocol,
    PopupValidationError,
    TimerServiceProtocol,
)
from .scheduler import TriggerScheduler

logger = logging.getLogger(__name__)

PopupDefinition = Union[Popup, Dict[str, Any]]
Subscriber = Callable[[Optional[Popup]], None]


class PopupEngine:
    """Popup targeting engine: registry, page context and active popup controller"""

    def __init__(
        self,
        repository: PopupStateRepository,
        environment: Optional[HostEnvironmentProtocol] = None,
        timers: Optional[TimerServiceProtocol] = None,
        event_publisher: Optional[PopupEventPublisher] = None,
        config: Optional[PopupEngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or PopupEngineConfig()
        self.repository = repository
        self.environment = environment or PageEnvironment()
        self.timers = timers or AsyncioTimerService()
        self.event_publisher = event_publisher
        self._clock = clock or self._default_clock()

        self._popups: Dict[str, Popup] = {}
        self._active: Optional[Popup] = None
        self._context = PageContext(
            language=self.config.default_language,
            mobile_breakpoint=self.config.mobile_breakpoint,
        )
        self._subscribers: List[Subscriber] = []
        self._pending_events: Set[asyncio.Task] = set()

        self._selector = CandidateSelector(
            state_lookup=repository.get_state,
            session_lookup=repository.get_session_count,
        )
        self._scheduler = TriggerScheduler(
            environment=self.environment,
            timers=self.timers,
            on_fire=self._handle_trigger_fired,
        )

    # ====================
    # State
    # ====================

    @property
    def active_popup(self) -> Optional[Popup]:
        return self._active

    @property
    def popups(self) -> List[Popup]:
        return list(self._popups.values())

    @property
    def context(self) -> PageContext:
        return self._context

    @property
    def scheduler_state(self) -> SchedulerState:
        return self._scheduler.state

    @property
    def armed_popup_ids(self) -> List[str]:
        return self._scheduler.armed_popup_ids

    def get_popup_stats(self, popup_id: str) -> Optional[DisplayState]:
        return self.repository.get_state(popup_id)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(active_popup)`` whenever the active popup changes"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ====================
    # Page Context
    # ====================

    def navigate(self, pathname: str) -> None:
        """Router notification: a new page view starts"""
        self._context = self._context.model_copy(update={"pathname": pathname})
        logger.debug(f"Navigated to {pathname}")
        self._scheduler.on_navigation(self._arm_candidates())

    def update_context(
        self,
        language: Optional[str] = None,
        viewport_width: Optional[int] = None,
    ) -> None:
        """Language or viewport changed without navigation"""
        updates: Dict[str, Any] = {}
        if language is not None:
            updates["language"] = str(language)
        if viewport_width is not None:
            try:
                updates["viewport_width"] = max(0, int(viewport_width))
            except (TypeError, ValueError):
                logger.warning(
                    f"Ignoring invalid viewport width {viewport_width!r}, "
                    f"keeping {self._context.viewport_width}"
                )
        if not updates:
            return
        self._context = self._context.model_copy(update=updates)
        self._refresh_triggers()

    # ====================
    # Registry
    # ====================

    def register_popup(self, definition: PopupDefinition) -> Optional[Popup]:
        """Add or replace a popup by id; invalid definitions are logged and ignored"""
        try:
            popup = self._parse_popup(definition)
        except PopupValidationError as e:
            logger.error(f"Rejected popup definition {e.popup_id or '<unknown>'}: {e}")
            return None

        replaced = popup.id in self._popups
        self._popups[popup.id] = popup
        logger.info(f"{'Updated' if replaced else 'Registered'} popup {popup.id}")
        self._refresh_triggers()
        return popup

    def unregister_popup(self, popup_id: str) -> bool:
        if self._popups.pop(popup_id, None) is None:
            return False
        self._scheduler.disarm(popup_id)
        logger.info(f"Unregistered popup {popup_id}")
        return True

    def sync_popups(self, definitions: Iterable[PopupDefinition]) -> List[Popup]:
        """
        Reconcile the registry with a complete list of definitions.

        New and changed popups are registered, popups missing from the list are
        unregistered. Invalid definitions are skipped.
        """
        incoming: List[Popup] = []
        for definition in definitions:
            try:
                incoming.append(self._parse_popup(definition))
            except PopupValidationError as e:
                logger.error(f"Skipping popup definition {e.popup_id or '<unknown>'}: {e}")

        keep = {popup.id for popup in incoming}
        for popup_id in [pid for pid in self._popups if pid not in keep]:
            self._popups.pop(popup_id)
            self._scheduler.disarm(popup_id)
        for popup in incoming:
            self._popups[popup.id] = popup

        logger.info(f"Synced {len(incoming)} popups")
        self._refresh_triggers()
        return incoming

    def _parse_popup(self, definition: PopupDefinition) -> Popup:
        if isinstance(definition, Popup):
            return definition
        popup_id = definition.get("id") if isinstance(definition, dict) else None
        try:
            return Popup.model_validate(definition)
        except ValidationError as e:
            raise PopupValidationError(str(e), popup_id=popup_id) from e

    # ====================
    # Selection
    # ====================

    def find_eligible_popup(self, trigger_type: TriggerType) -> Optional[Popup]:
        """Highest-priority popup currently eligible for a trigger type"""
        return self._selector.select(
            self._popups.values(), trigger_type, self._context, self._now()
        )

    def is_eligible(self, popup_id: str) -> bool:
        popup = self._popups.get(popup_id)
        if popup is None:
            return False
        return self._selector.is_eligible(popup, self._context, self._now())

    def _arm_candidates(self) -> List[Popup]:
        return self._selector.eligible(self._popups.values(), self._context, self._now())

    def _refresh_triggers(self) -> None:
        self._scheduler.on_context_change(self._arm_candidates())

    def _handle_trigger_fired(self, popup_id: str) -> None:
        try:
            popup = self._popups.get(popup_id)
            if popup is None or self._active is not None:
                return
            # Eligibility may have changed since arming
            if not self._selector.is_eligible(popup, self._context, self._now()):
                return
            self.show(popup)
        except Exception as e:
            logger.error(f"Error handling trigger for popup {popup_id}: {e}", exc_info=True)

    # ====================
    # Active Popup Controller
    # ====================

    def show(self, popup: Popup) -> bool:
        """Make popup active; no-op while another popup is shown"""
        if self._active is not None:
            logger.debug(f"Popup {self._active.id} already active, not showing {popup.id}")
            return False

        self._active = popup
        self._scheduler.on_popup_shown()
        state = self.repository.record_display(popup.id, self._now())
        logger.info(f"Showing popup {popup.id} (display #{state.display_count})")

        if popup.track_views:
            self._emit_view(popup, state)
        self._notify()
        return True

    def hide(self) -> None:
        """Close the active popup without recording anything"""
        if self._active is None:
            return
        logger.debug(f"Hiding popup {self._active.id}")
        self._active = None
        self._scheduler.on_popup_cleared()
        self._notify()

    def dismiss(self, popup_id: str) -> None:
        """Permanently dismiss a popup and close whatever is shown"""
        self.repository.mark_dismissed(popup_id)
        logger.info(f"Popup {popup_id} dismissed")
        if self._active is None:
            return
        self._active = None
        self._scheduler.on_popup_cleared()
        self._notify()

    def track_conversion(self, popup_id: str) -> None:
        """Record a conversion; the popup stays open"""
        self.repository.mark_converted(popup_id)
        popup = self._popups.get(popup_id)
        if popup is not None and popup.track_clicks:
            self._emit_conversion(popup)

    def trigger_popup(self, trigger_id: str) -> bool:
        """Manual trigger for button_click popups bound to ``trigger_id``"""
        if self._active is not None:
            return False
        candidates = [
            popup
            for popup in self._selector.eligible(
                self._popups.values(), self._context, self._now(), TriggerType.BUTTON_CLICK
            )
            if popup.trigger.element_selector == trigger_id
        ]
        if not candidates:
            logger.debug(f"No eligible popup for trigger {trigger_id}")
            return False
        return self.show(candidates[0])

    # ====================
    # Session and Lifecycle
    # ====================

    def reset_session(self) -> None:
        self.repository.reset_session()

    def clear_history(self) -> None:
        self.repository.clear()

    def close(self) -> None:
        """Tear down every listener and timer"""
        self._scheduler.teardown()
        self._subscribers.clear()

    async def flush_events(self) -> None:
        """Wait for in-flight event publishes"""
        if self._pending_events:
            await asyncio.gather(*list(self._pending_events), return_exceptions=True)

    # ====================
    # Helpers
    # ====================

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self._active)
            except Exception as e:
                logger.error(f"Popup subscriber failed: {e}", exc_info=True)

    def _emit_view(self, popup: Popup, state: DisplayState) -> None:
        if not self.event_publisher:
            return
        self._schedule_publish(
            partial(
                self.event_publisher.publish_popup_viewed,
                popup_id=popup.id,
                popup_name=popup.name,
                pathname=self._context.pathname,
                language=self._context.language,
                device=self._context.device.value,
                display_count=state.display_count,
                session_count=self.repository.get_session_count(popup.id),
            )
        )

    def _emit_conversion(self, popup: Popup) -> None:
        if not self.event_publisher:
            return
        self._schedule_publish(
            partial(
                self.event_publisher.publish_popup_conversion,
                popup_id=popup.id,
                popup_name=popup.name,
                pathname=self._context.pathname,
                language=self._context.language,
                conversion_event=popup.conversion_event,
            )
        )

    def _schedule_publish(self, make_coro: Callable[[], Awaitable[bool]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping popup event")
            return
        task = loop.create_task(make_coro())
        self._pending_events.add(task)
        task.add_done_callback(self._pending_events.discard)

    def _default_clock(self) -> Callable[[], datetime]:
        if self.config.timezone:
            try:
                tz = ZoneInfo(self.config.timezone)
                return lambda: datetime.now(tz)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(f"Unknown timezone {self.config.timezone!r}, using local time")
        return lambda: datetime.now().astimezone()

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.astimezone()
        return now


__all__ = ["PopupEngine"]
