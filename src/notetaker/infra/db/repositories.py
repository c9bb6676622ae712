from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from src.notetaker.domain.models.recording_session import RecordingSession


class SessionRepository(ABC):
    """Storage interface for recording sessions.

    Implementations must make ``update`` atomic per record and bump
    ``updated_at`` on every applied change. Returned sessions are detached
    copies; mutating them has no effect on stored state.
    """

    @abstractmethod
    def add(self, session: RecordingSession) -> RecordingSession:
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> Optional[RecordingSession]:
        raise NotImplementedError

    @abstractmethod
    def get_by_bot_id(self, bot_id: str) -> Optional[RecordingSession]:
        raise NotImplementedError

    @abstractmethod
    def find_latest_unassigned(self, account_id: str) -> Optional[RecordingSession]:
        """Return the most recently created session for ``account_id`` that
        has no bot id yet."""
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> List[RecordingSession]:
        """Return every session, most recently created first."""
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        session_id: str,
        *,
        skip_if_terminal: bool = False,
        **changes: Any,
    ) -> Optional[RecordingSession]:
        """Apply a partial update and return the stored record.

        Returns ``None`` for unknown ids. With ``skip_if_terminal`` the change
        is dropped (and the unchanged record returned) when the stored session
        is already completed or failed at write time.
        """
        raise NotImplementedError
