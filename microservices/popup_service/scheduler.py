"""
Trigger Scheduler

Arms and disarms trigger listeners/timers for the current page view.

States per page view::

    IDLE -> LISTENERS_ARMED -> POPUP_ACTIVE -> (hide/dismiss) -> IDLE

Everything armed is tracked per popup id and torn down before anything new is
armed. Once a popup has been shown the page view is spent: clearing the popup
returns to IDLE without re-arming until the next navigation.
"""

import logging
from typing import Callable, Dict, Iterable, List

from .models import Popup, SchedulerState
from .protocols import HostEnvironmentProtocol, TimerServiceProtocol
from .triggers import TriggerContext

logger = logging.getLogger(__name__)


class TriggerScheduler:
    """Per-page trigger lifecycle"""

    def __init__(
        self,
        environment: HostEnvironmentProtocol,
        timers: TimerServiceProtocol,
        on_fire: Callable[[str], None],
    ):
        self.environment = environment
        self.timers = timers
        self.on_fire = on_fire
        self._cancels: Dict[str, Callable[[], None]] = {}
        self._state = SchedulerState.IDLE
        self._page_spent = False

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def armed_popup_ids(self) -> List[str]:
        return list(self._cancels)

    @property
    def page_spent(self) -> bool:
        """True once a popup has been shown during the current page view"""
        return self._page_spent

    # ====================
    # Transitions
    # ====================

    def on_navigation(self, candidates: Iterable[Popup]) -> None:
        """New page view: drop everything and arm the given candidates"""
        self.teardown()
        if self._state == SchedulerState.POPUP_ACTIVE:
            logger.debug("Popup active during navigation, triggers stay disarmed")
            return
        self._page_spent = False
        self._arm_all(candidates)

    def on_context_change(self, candidates: Iterable[Popup]) -> None:
        """Language, viewport or registry changed within the same page view"""
        if self._state == SchedulerState.POPUP_ACTIVE or self._page_spent:
            return
        self.teardown()
        self._arm_all(candidates)

    def on_popup_shown(self) -> None:
        self.teardown()
        self._state = SchedulerState.POPUP_ACTIVE
        self._page_spent = True

    def on_popup_cleared(self) -> None:
        self.teardown()
        self._state = SchedulerState.IDLE

    # ====================
    # Arming
    # ====================

    def _arm_all(self, candidates: Iterable[Popup]) -> None:
        for popup in candidates:
            self._arm(popup)
        self._state = (
            SchedulerState.LISTENERS_ARMED if self._cancels else SchedulerState.IDLE
        )
        logger.debug(f"Armed triggers for {len(self._cancels)} popups")

    def _arm(self, popup: Popup) -> None:
        popup_id = popup.id
        ctx = TriggerContext(
            environment=self.environment,
            timers=self.timers,
            fire=lambda: self._fire(popup_id),
        )
        try:
            cancel = popup.trigger.arm(ctx)
        except Exception as e:
            logger.error(f"Failed to arm {popup.trigger.type} trigger for {popup_id}: {e}")
            return
        if cancel is not None:
            self._cancels[popup_id] = cancel

    def _fire(self, popup_id: str) -> None:
        # Late callbacks from something already torn down
        if popup_id not in self._cancels:
            return
        if self._state != SchedulerState.LISTENERS_ARMED:
            return
        logger.debug(f"Trigger fired for popup {popup_id}")
        self.on_fire(popup_id)

    def disarm(self, popup_id: str) -> None:
        """Cancel a single popup's trigger (e.g. it was unregistered)"""
        cancel = self._cancels.pop(popup_id, None)
        if cancel is not None:
            self._safe_cancel(popup_id, cancel)
        if not self._cancels and self._state == SchedulerState.LISTENERS_ARMED:
            self._state = SchedulerState.IDLE

    def teardown(self) -> None:
        """Cancel every outstanding timer and listener"""
        cancels, self._cancels = self._cancels, {}
        for popup_id, cancel in cancels.items():
            self._safe_cancel(popup_id, cancel)
        if self._state == SchedulerState.LISTENERS_ARMED:
            self._state = SchedulerState.IDLE

    def _safe_cancel(self, popup_id: str, cancel: Callable[[], None]) -> None:
        try:
            cancel()
        except Exception as e:
            logger.error(f"Failed to cancel trigger for {popup_id}: {e}")


__all__ = ["TriggerScheduler"]
