"""
Popup Eligibility

Targeting, schedule and frequency predicates plus the candidate selector that
combines them. All checks are synchronous and pure given
``(context, popup, state, now)``.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .models import (
    DisplayState,
    PageContext,
    Popup,
    PopupFrequency,
    PopupSchedule,
    PopupTargeting,
    TriggerType,
)

logger = logging.getLogger(__name__)

# (eligible, skip_reason)
Verdict = Tuple[bool, Optional[str]]


# ====================
# Targeting
# ====================


def matches_page(path: str, patterns: Optional[Sequence[str]]) -> bool:
    """
    Check a pathname against targeting patterns.

    An empty or absent pattern list matches every path. ``"*"`` matches all,
    a trailing ``*`` is a prefix match, anything else must match exactly.
    """
    if not patterns:
        return True
    return any(_matches_pattern(path, pattern) for pattern in patterns)


def _matches_pattern(path: str, pattern: str) -> bool:
    if pattern == "*":
        return True
    if pattern.endswith("*"):
        return path.startswith(pattern[:-1])
    return path == pattern


def check_targeting(targeting: Optional[PopupTargeting], context: PageContext) -> bool:
    """Check page, device and language restrictions"""
    if targeting is None:
        return True

    # pages=[] here means every listed pattern was invalid
    if targeting.pages is not None and not any(
        _matches_pattern(context.pathname, pattern) for pattern in targeting.pages
    ):
        return False

    if targeting.exclude_pages and any(
        _matches_pattern(context.pathname, pattern) for pattern in targeting.exclude_pages
    ):
        return False

    if not _allows(targeting.devices, context.device):
        return False

    if not _allows(targeting.languages, context.language):
        return False

    return True


def _allows(allowed: Optional[Sequence[Any]], value: Any) -> bool:
    """None is unrestricted; an empty list allows nothing"""
    return allowed is None or value in allowed


# ====================
# Schedule
# ====================


def parse_minutes(value: Optional[str]) -> Optional[int]:
    """Convert "HH:MM" to minutes since midnight, None when unusable"""
    if not value:
        return None
    try:
        hours, minutes = value.split(":", 1)
        return int(hours) * 60 + int(minutes)
    except ValueError:
        logger.warning(f"Ignoring malformed schedule time: {value!r}")
        return None


def check_schedule(schedule: Optional[PopupSchedule], now: datetime) -> bool:
    """
    Check whether ``now`` (local time) falls inside the schedule window.

    Date bounds are inclusive. When both times are present and the start is
    later than the end the window wraps past midnight (22:00-02:00).
    """
    if schedule is None:
        return True

    today = now.date()
    if schedule.start_date and today < schedule.start_date:
        return False
    if schedule.end_date and today > schedule.end_date:
        return False

    # isoweekday: Mon=1..Sun=7 -> Sun=0..Sat=6
    if not _allows(schedule.days_of_week, now.isoweekday() % 7):
        return False

    start = parse_minutes(schedule.start_time)
    end = parse_minutes(schedule.end_time)
    current = now.hour * 60 + now.minute

    if start is not None and end is not None and start > end:
        return current >= start or current <= end

    if start is not None and current < start:
        return False
    if end is not None and current > end:
        return False

    return True


# ====================
# Frequency
# ====================


def check_frequency(
    frequency: Optional[PopupFrequency],
    state: Optional[DisplayState],
    session_count: int,
    now: datetime,
) -> Verdict:
    """
    Check display limits for one visitor.

    Returns (eligible, skip_reason). A popup with no display history is always
    eligible.
    """
    frequency = frequency or PopupFrequency()

    if state is None:
        return True, None

    if state.dismissed:
        return False, "dismissed"

    if (
        frequency.max_displays_per_session is not None
        and session_count >= frequency.max_displays_per_session
    ):
        return False, "session_limit"

    if (
        frequency.max_displays_total is not None
        and state.display_count >= frequency.max_displays_total
    ):
        return False, "total_limit"

    if frequency.cooldown_minutes is not None and state.last_displayed is not None:
        cooldown_end = state.last_displayed + timedelta(minutes=frequency.cooldown_minutes)
        if now < cooldown_end:
            return False, "cooldown"

    if (
        frequency.max_displays_per_day is not None
        and state.displays_on(now.date()) >= frequency.max_displays_per_day
    ):
        return False, "daily_limit"

    return True, None


# ====================
# Candidate Selection
# ====================


class CandidateSelector:
    """Combines the eligibility predicates across registered popups"""

    def __init__(
        self,
        state_lookup: Callable[[str], Optional[DisplayState]],
        session_lookup: Callable[[str], int],
    ):
        self.state_lookup = state_lookup
        self.session_lookup = session_lookup

    def evaluate(self, popup: Popup, context: PageContext, now: datetime) -> Verdict:
        """Run every gate except the trigger type check"""
        if not popup.active:
            return False, "inactive"

        if not check_targeting(popup.targeting, context):
            return False, "targeting"

        if not check_schedule(popup.schedule, now):
            return False, "schedule"

        return check_frequency(
            popup.frequency,
            self.state_lookup(popup.id),
            self.session_lookup(popup.id),
            now,
        )

    def is_eligible(self, popup: Popup, context: PageContext, now: datetime) -> bool:
        eligible, reason = self.evaluate(popup, context, now)
        if not eligible:
            logger.debug(f"Popup {popup.id} skipped: {reason}")
        return eligible

    def eligible(
        self,
        popups: Iterable[Popup],
        context: PageContext,
        now: datetime,
        trigger_type: Optional[TriggerType] = None,
    ) -> List[Popup]:
        """
        Eligible popups ordered by priority, highest first.

        Ties keep registration order. When ``trigger_type`` is None every
        trigger type is considered.
        """
        candidates = [
            popup
            for popup in popups
            if (trigger_type is None or popup.trigger_type == trigger_type)
            and self.is_eligible(popup, context, now)
        ]
        # sorted() is stable, reverse=True keeps equal priorities in order
        return sorted(candidates, key=lambda p: p.priority, reverse=True)

    def select(
        self,
        popups: Iterable[Popup],
        trigger_type: TriggerType,
        context: PageContext,
        now: datetime,
    ) -> Optional[Popup]:
        """Highest-priority eligible popup for a trigger type"""
        candidates = self.eligible(popups, context, now, trigger_type)
        return candidates[0] if candidates else None


__all__ = [
    "matches_page",
    "check_targeting",
    "parse_minutes",
    "check_schedule",
    "check_frequency",
    "CandidateSelector",
]
