from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from src.notetaker.domain.models.recording_session import RecordingSession
from src.notetaker.infra.db.repositories import SessionRepository


class InMemorySessionRepository(SessionRepository):
    """Process-local session store.

    Suitable for tests and single-process deployments without a database.
    A single lock serializes writers; readers get deep copies so callers
    never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, RecordingSession] = {}
        self._lock = Lock()

    def add(self, session: RecordingSession) -> RecordingSession:
        with self._lock:
            if session.id in self._sessions:
                raise KeyError(f"Session {session.id} already exists")
            self._sessions[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[RecordingSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session is not None else None

    def get_by_bot_id(self, bot_id: str) -> Optional[RecordingSession]:
        with self._lock:
            for session in self._sessions.values():
                if session.bot_id == bot_id:
                    return session.model_copy(deep=True)
        return None

    def find_latest_unassigned(self, account_id: str) -> Optional[RecordingSession]:
        for session in self.list_all():
            if session.account_id == account_id and session.bot_id is None:
                return session
        return None

    def list_all(self) -> List[RecordingSession]:
        with self._lock:
            # Reverse insertion order first so that sessions sharing a
            # created_at timestamp still come out newest first.
            snapshot = [s.model_copy(deep=True) for s in reversed(list(self._sessions.values()))]
        return sorted(snapshot, key=lambda s: s.created_at, reverse=True)

    def update(
        self,
        session_id: str,
        *,
        skip_if_terminal: bool = False,
        **changes: Any,
    ) -> Optional[RecordingSession]:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return None
            if skip_if_terminal and current.is_terminal:
                return current.model_copy(deep=True)
            updated = current.model_copy(
                update={**changes, "updated_at": datetime.now(timezone.utc)},
            ).model_copy(deep=True)
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)
