"""
Unit Tests for Candidate Selection

Tests priority ordering, trigger filtering and gate combination.
"""

import pytest
from typing import Dict

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.popup_service.eligibility import CandidateSelector
from microservices.popup_service.models import DisplayState, TriggerType


pytestmark = [pytest.mark.unit]


@pytest.fixture
def states() -> Dict[str, DisplayState]:
    return {}


@pytest.fixture
def session_counts() -> Dict[str, int]:
    return {}


@pytest.fixture
def selector(states, session_counts) -> CandidateSelector:
    return CandidateSelector(
        state_lookup=states.get,
        session_lookup=lambda popup_id: session_counts.get(popup_id, 0),
    )


class TestSelectByPriority:
    """Highest priority wins"""

    def test_higher_priority_selected(self, selector, factory, now):
        low = factory.make_popup("low", priority=5)
        high = factory.make_popup("high", priority=10)
        selected = selector.select([low, high], TriggerType.PAGE_LOAD, factory.make_context(), now)
        assert selected.id == "high"

    def test_ties_keep_registration_order(self, selector, factory, now):
        first = factory.make_popup("first", priority=3)
        second = factory.make_popup("second", priority=3)
        eligible = selector.eligible([first, second], factory.make_context(), now)
        assert [p.id for p in eligible] == ["first", "second"]

    def test_no_candidates(self, selector, factory, now):
        assert selector.select([], TriggerType.PAGE_LOAD, factory.make_context(), now) is None


class TestTriggerFilter:
    """Only popups with the requested trigger type compete"""

    def test_other_trigger_types_ignored(self, selector, factory, now):
        scroll = factory.make_popup("scroll", priority=50, trigger={"type": "scroll_depth"})
        load = factory.make_popup("load", priority=1)
        selected = selector.select([scroll, load], TriggerType.PAGE_LOAD, factory.make_context(), now)
        assert selected.id == "load"

    def test_no_filter_returns_all_types(self, selector, factory, now):
        scroll = factory.make_popup("scroll", trigger={"type": "scroll_depth"})
        load = factory.make_popup("load")
        assert len(selector.eligible([scroll, load], factory.make_context(), now)) == 2


class TestGateCombination:
    """Each gate can exclude a popup"""

    def test_inactive_excluded(self, selector, factory, now):
        popup = factory.make_popup("off", active=False)
        assert selector.evaluate(popup, factory.make_context(), now) == (False, "inactive")

    def test_targeting_excluded(self, selector, factory, now):
        popup = factory.make_popup("menu", targeting={"pages": ["/menu*"]})
        assert selector.evaluate(popup, factory.make_context("/about"), now) == (
            False,
            "targeting",
        )

    def test_schedule_excluded(self, selector, factory, now):
        popup = factory.make_popup("later", schedule={"startDate": "2026-02-01"})
        assert selector.evaluate(popup, factory.make_context(), now) == (False, "schedule")

    def test_frequency_excluded(self, selector, states, factory, now):
        popup = factory.make_popup("gone")
        states["gone"] = factory.make_display_state("gone", dismissed=True)
        assert selector.evaluate(popup, factory.make_context(), now) == (False, "dismissed")

    def test_session_counts_consulted(self, selector, states, session_counts, factory, now):
        popup = factory.make_popup("seen")
        states["seen"] = factory.make_display_state("seen")
        session_counts["seen"] = 1
        assert selector.is_eligible(popup, factory.make_context(), now) is False

    def test_lower_priority_used_when_higher_ineligible(self, selector, states, factory, now):
        high = factory.make_popup("high", priority=10)
        low = factory.make_popup("low", priority=5)
        states["high"] = factory.make_display_state("high", dismissed=True)
        selected = selector.select([high, low], TriggerType.PAGE_LOAD, factory.make_context(), now)
        assert selected.id == "low"
