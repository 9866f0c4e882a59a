from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from glow_engine.models import (
    BehaviorPatterns,
    Interaction,
    InteractionType,
    Preferences,
    SessionContext,
    SessionRecord,
)
from glow_engine.services.behavior import analyze_behavior
from glow_engine.store.storage import InMemoryStorage, KeyValueStorage


logger = logging.getLogger("glow-engine.session-state")

SESSION_STORAGE_KEY = "session_state"
SESSION_MAX_AGE_MS = 24 * 60 * 60 * 1000
MAX_INTERACTIONS = 100
MAX_SEARCH_HISTORY = 20
RECENT_INTERACTIONS = 10

Clock = Callable[[], int]
Listener = Callable[[SessionRecord], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def session_to_json_dict(record: SessionRecord) -> dict[str, Any]:
    data = record.model_dump(mode="json", by_alias=True)
    # Preference keys stay absent until explicitly set.
    data["preferences"] = record.preferences.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return data


def _set_fields(
    model_cls: Union[type[Preferences], type[SessionContext]],
    partial: Union[Preferences, SessionContext, Mapping[str, Any]],
) -> dict[str, Any]:
    if isinstance(partial, model_cls):
        return partial.model_dump(exclude_unset=True)
    return model_cls.model_validate(dict(partial)).model_dump(exclude_unset=True)


class SessionManager:
    """Single-user session record with best-effort persistence.

    All mutation goes through the methods below. Each mutating call notifies
    subscribers synchronously and writes the whole record to storage; storage
    failures are logged and never raised.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        *,
        storage_key: str = SESSION_STORAGE_KEY,
        clock: Optional[Clock] = None,
        max_age_ms: int = SESSION_MAX_AGE_MS,
    ) -> None:
        self._storage: KeyValueStorage = storage if storage is not None else InMemoryStorage()
        self._storage_key = storage_key
        self._clock: Clock = clock or _now_ms
        self._max_age_ms = max_age_ms
        self._listeners: list[Listener] = []
        self._state = self._load_state() or self._initialize_state()

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    def _generate_id(self) -> str:
        return f"{self._clock()}-{uuid.uuid4().hex[:9]}"

    def _initialize_state(self) -> SessionRecord:
        return SessionRecord(
            user_id=self._generate_id(),
            session_id=self._generate_id(),
            start_time=self._clock(),
        )

    def _load_state(self) -> Optional[SessionRecord]:
        try:
            raw = self._storage.get_item(self._storage_key)
        except Exception as exc:
            logger.warning("session_state_load_failed key=%s err=%s", self._storage_key, exc)
            return None
        if not raw:
            return None

        try:
            obj = json.loads(raw)
        except ValueError:
            logger.warning("session_state_parse_failed key=%s", self._storage_key)
            return None
        if not isinstance(obj, dict):
            return None
        try:
            record = SessionRecord.model_validate(obj)
        except ValidationError as exc:
            logger.warning("session_state_invalid key=%s errors=%s", self._storage_key, exc.error_count())
            return None

        age_ms = self._clock() - record.start_time
        if age_ms > self._max_age_ms:
            logger.info("session_state_expired key=%s age_ms=%s", self._storage_key, age_ms)
            return None
        return record

    def _save_state(self) -> bool:
        try:
            self._storage.set_item(self._storage_key, _json_dumps(session_to_json_dict(self._state)))
        except Exception as exc:
            logger.warning("session_state_save_failed key=%s err=%s", self._storage_key, exc)
            return False
        return True

    def _notify_listeners(self) -> None:
        snapshot = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                logger.warning("session_state_listener_failed err=%s", exc)

    def _commit(self) -> None:
        self._notify_listeners()
        self._save_state()

    def flush(self) -> bool:
        return self._save_state()

    def track_interaction(self, type: InteractionType, target: str, data: Any = None) -> None:
        interaction = Interaction(timestamp=self._clock(), type=type, target=target, data=data)
        interactions = self._state.interactions
        interactions.append(interaction)
        if len(interactions) > MAX_INTERACTIONS:
            del interactions[:-MAX_INTERACTIONS]
        self._commit()

    def update_preferences(self, partial: Union[Preferences, Mapping[str, Any]]) -> None:
        merged = {**self._state.preferences.model_dump(exclude_unset=True), **_set_fields(Preferences, partial)}
        self._state.preferences = Preferences.model_validate(merged)
        self._commit()

    def update_context(self, partial: Union[SessionContext, Mapping[str, Any]]) -> None:
        current = self._state.context.model_dump()
        merged = {**current, **_set_fields(SessionContext, partial)}
        self._state.context = SessionContext.model_validate(merged)
        self._commit()

    def navigate_to(self, page: str) -> None:
        context = self._state.context
        if page not in context.visited_pages:
            context.visited_pages.append(page)
        context.current_page = page
        self.track_interaction("navigation", page)

    def complete_action(self, action: str) -> None:
        context = self._state.context
        if action in context.completed_actions:
            return
        context.completed_actions.append(action)
        self.track_interaction("completion", action)

    def add_search(self, query: str) -> None:
        context = self._state.context
        context.search_history = [query, *context.search_history][:MAX_SEARCH_HISTORY]
        self.track_interaction("input", "search", {"query": query})

    def view_product(self, product_id: str) -> None:
        context = self._state.context
        if product_id not in context.viewed_products:
            context.viewed_products.append(product_id)
        self.track_interaction("click", "product", {"productId": product_id})

    def save_item(self, item_id: str, item_type: str) -> None:
        key = f"{item_type}:{item_id}"
        context = self._state.context
        if key in context.saved_items:
            return
        context.saved_items.append(key)
        self.track_interaction("click", "save", {"itemId": item_id, "type": item_type})

    def get_state(self) -> SessionRecord:
        return self._state.model_copy(deep=True)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def reset(self) -> None:
        self._state = self._initialize_state()
        self._save_state()
        self._notify_listeners()

    def get_behavior_patterns(self) -> BehaviorPatterns:
        return analyze_behavior(
            self._state.interactions,
            self._state.context,
            session_duration_ms=self._clock() - self._state.start_time,
        )

    def get_personalization_context(self) -> dict[str, Any]:
        state = self.get_state()
        return {
            "preferences": state.preferences,
            "patterns": self.get_behavior_patterns(),
            "recent_interactions": state.interactions[-RECENT_INTERACTIONS:],
            "context": state.context,
        }
