from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, Iterable, Optional, TypeVar
from uuid import uuid4

from ..models.selection import selection_state, selection_to_dict
from .store import PatternStore

T = TypeVar("T")


@dataclass
class SessionRecord:
    session_id: str
    store: PatternStore = field(default_factory=PatternStore)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def to_dict(self, include_pattern: bool = False) -> dict:
        store = self.store
        pattern = store.pattern
        data = {
            "session_id": self.session_id,
            "name": pattern.name if pattern else None,
            "file_id": pattern.fileId if pattern else None,
            "active_layer_id": store.active_layer_id,
            "has_unsaved_changes": store.has_unsaved_changes,
            "can_undo": store.can_undo(),
            "can_redo": store.can_redo(),
            "selection_state": selection_state(store.selection),
            "selection": selection_to_dict(store.selection),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_pattern and pattern is not None:
            data["pattern"] = pattern.to_dict()
        return data


class SessionStore:
    """Edit sessions keyed by id; one lock serialises every store call."""

    def __init__(self, store_factory: Callable[[], PatternStore] = PatternStore) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = Lock()
        self._factory = store_factory

    def create(self, session_id: Optional[str] = None) -> SessionRecord:
        record = SessionRecord(session_id=session_id or str(uuid4()), store=self._factory())
        with self._lock:
            self._sessions[record.session_id] = record
        return record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._sessions.get(session_id)

    def run(self, session_id: str, action: Callable[[PatternStore], T]) -> Optional[T]:
        """Run ``action`` against a session's store while holding the lock."""

        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            result = action(record.store)
            record.updated_at = time.time()
            return result

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list(self, *, query: Optional[str] = None) -> Iterable[SessionRecord]:
        with self._lock:
            records = list(self._sessions.values())
        if query:
            query_lower = query.lower()
            records = [
                r
                for r in records
                if query_lower in r.session_id.lower()
                or (r.store.pattern is not None and query_lower in r.store.pattern.name.lower())
            ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records


store = SessionStore()
