from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import select

from src.notetaker.domain.models.recording_session import RecordingSession
from src.notetaker.infra.db.models import RecordingSessionORM
from src.notetaker.infra.db.repositories import SessionRepository
from src.notetaker.infra.db.session import SessionFactory


class SqlSessionRepository(SessionRepository):
    """SQL-backed SessionRepository.

    Each call runs in its own short transaction. ``update`` reads the row with
    ``SELECT ... FOR UPDATE`` (a no-op on SQLite) so the terminal-status check
    and the write happen against the same locked row.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, session: RecordingSession) -> RecordingSession:
        with self._session_factory() as db:
            db.add(RecordingSessionORM.from_domain(session))
            db.commit()
        return session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[RecordingSession]:
        with self._session_factory() as db:
            orm = db.get(RecordingSessionORM, session_id)
            return orm.to_domain() if orm is not None else None

    def get_by_bot_id(self, bot_id: str) -> Optional[RecordingSession]:
        with self._session_factory() as db:
            stmt = select(RecordingSessionORM).where(RecordingSessionORM.bot_id == bot_id).limit(1)
            orm = db.scalars(stmt).first()
            return orm.to_domain() if orm is not None else None

    def find_latest_unassigned(self, account_id: str) -> Optional[RecordingSession]:
        with self._session_factory() as db:
            stmt = (
                select(RecordingSessionORM)
                .where(RecordingSessionORM.account_id == account_id)
                .where(RecordingSessionORM.bot_id.is_(None))
                .order_by(RecordingSessionORM.created_at.desc())
                .limit(1)
            )
            orm = db.scalars(stmt).first()
            return orm.to_domain() if orm is not None else None

    def list_all(self) -> List[RecordingSession]:
        with self._session_factory() as db:
            stmt = select(RecordingSessionORM).order_by(RecordingSessionORM.created_at.desc())
            return [orm.to_domain() for orm in db.scalars(stmt)]

    def update(
        self,
        session_id: str,
        *,
        skip_if_terminal: bool = False,
        **changes: Any,
    ) -> Optional[RecordingSession]:
        with self._session_factory() as db:
            stmt = select(RecordingSessionORM).where(RecordingSessionORM.id == session_id).with_for_update()
            orm = db.scalars(stmt).first()
            if orm is None:
                return None
            current = orm.to_domain()
            if skip_if_terminal and current.is_terminal:
                return current

            updated = current.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
            orm.apply(updated)
            db.commit()
            return updated.model_copy(deep=True)
