"""
Popup State Repository

Durable per-popup display history plus session-scoped view counters, kept as
two JSON documents under a fixed namespace:

- ``{namespace}_popup_states``: ``{popupId: DisplayState}``
- ``{namespace}_popup_session``: ``{popupId: int}``

Read failures are logged and treated as empty state; write failures are
logged and the in-memory state is kept.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import ValidationError

from .models import DisplayState
from .protocols import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


class PopupStateRepository:
    """Display state and session counter persistence"""

    STATES_SUFFIX = "popup_states"
    SESSION_SUFFIX = "popup_session"

    def __init__(
        self,
        durable_store: KeyValueStoreProtocol,
        session_store: KeyValueStoreProtocol,
        namespace: str = "popup_engine",
    ):
        self.durable_store = durable_store
        self.session_store = session_store
        self.namespace = namespace
        self._states: Dict[str, DisplayState] = {}
        self._session_counts: Dict[str, int] = {}
        self._lock = threading.RLock()

    @property
    def states_key(self) -> str:
        return f"{self.namespace}_{self.STATES_SUFFIX}"

    @property
    def session_key(self) -> str:
        return f"{self.namespace}_{self.SESSION_SUFFIX}"

    # ====================
    # Loading
    # ====================

    def load(self) -> None:
        """Load both documents; anything unreadable starts empty"""
        with self._lock:
            self._states = self._load_states()
            self._session_counts = self._load_session_counts()
        logger.debug(
            f"Loaded {len(self._states)} display states, "
            f"{len(self._session_counts)} session counters"
        )

    def _read_document(self, store: KeyValueStoreProtocol, key: str) -> Dict:
        try:
            raw = store.get(key)
        except Exception as e:
            logger.error(f"Error loading popup document {key}: {e}")
            return {}
        if not raw:
            return {}
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing popup document {key}: {e}")
            return {}
        if not isinstance(document, dict):
            logger.error(f"Popup document {key} is not an object, ignoring")
            return {}
        return document

    def _load_states(self) -> Dict[str, DisplayState]:
        states: Dict[str, DisplayState] = {}
        for popup_id, entry in self._read_document(self.durable_store, self.states_key).items():
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed display state for {popup_id}")
                continue
            try:
                states[popup_id] = DisplayState.from_document({"popupId": popup_id, **entry})
            except ValidationError as e:
                logger.warning(f"Skipping invalid display state for {popup_id}: {e}")
        return states

    def _load_session_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for popup_id, value in self._read_document(self.session_store, self.session_key).items():
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                counts[popup_id] = value
            else:
                logger.warning(f"Skipping invalid session count for {popup_id}: {value!r}")
        return counts

    # ====================
    # Queries
    # ====================

    def get_state(self, popup_id: str) -> Optional[DisplayState]:
        with self._lock:
            state = self._states.get(popup_id)
            return state.model_copy() if state else None

    def get_session_count(self, popup_id: str) -> int:
        with self._lock:
            return self._session_counts.get(popup_id, 0)

    def all_states(self) -> Dict[str, DisplayState]:
        with self._lock:
            return {k: v.model_copy() for k, v in self._states.items()}

    # ====================
    # Mutations
    # ====================

    def record_display(self, popup_id: str, now: datetime) -> DisplayState:
        """Count one successful display in history, daily and session counters"""
        today = now.date()
        with self._lock:
            state = self._states.get(popup_id) or DisplayState(popup_id=popup_id)
            daily_count = state.displays_on(today) + 1
            state = state.model_copy(
                update={
                    "display_count": state.display_count + 1,
                    "last_displayed": now.astimezone(timezone.utc),
                    "daily_date": today,
                    "daily_count": daily_count,
                }
            )
            self._states[popup_id] = state
            self._session_counts[popup_id] = self._session_counts.get(popup_id, 0) + 1
            self._save_states()
            self._save_session_counts()
            return state.model_copy()

    def mark_dismissed(self, popup_id: str) -> DisplayState:
        with self._lock:
            state = self._states.get(popup_id) or DisplayState(popup_id=popup_id)
            state = state.model_copy(update={"dismissed": True})
            self._states[popup_id] = state
            self._save_states()
            return state.model_copy()

    def mark_converted(self, popup_id: str) -> DisplayState:
        with self._lock:
            state = self._states.get(popup_id) or DisplayState(popup_id=popup_id)
            state = state.model_copy(update={"converted": True})
            self._states[popup_id] = state
            self._save_states()
            return state.model_copy()

    def reset_session(self) -> None:
        """Start a new browsing session; durable history is untouched"""
        with self._lock:
            self._session_counts = {}
            self._save_session_counts()
        logger.info("Popup session counters reset")

    def clear(self) -> None:
        """Forget all display history, including dismissals"""
        with self._lock:
            self._states = {}
            self._session_counts = {}
            for store, key in (
                (self.durable_store, self.states_key),
                (self.session_store, self.session_key),
            ):
                try:
                    store.delete(key)
                except Exception as e:
                    logger.error(f"Error clearing popup document {key}: {e}")
        logger.info("Popup display history cleared")

    # ====================
    # Persistence
    # ====================

    def _save_states(self) -> None:
        document = {
            popup_id: state.to_document() for popup_id, state in self._states.items()
        }
        try:
            self.durable_store.set(self.states_key, json.dumps(document))
        except Exception as e:
            logger.error(f"Error saving popup states: {e}")

    def _save_session_counts(self) -> None:
        try:
            self.session_store.set(self.session_key, json.dumps(self._session_counts))
        except Exception as e:
            logger.error(f"Error saving session counts: {e}")


__all__ = ["PopupStateRepository"]
