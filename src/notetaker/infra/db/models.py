from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.notetaker.domain.models.meeting_summary import MeetingSummary
from src.notetaker.domain.models.recording_session import (
    RecordingSession,
    SessionProgress,
    SessionStatus,
)


class Base(DeclarativeBase):
    pass


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RecordingSessionORM(Base):
    __tablename__ = "recording_sessions"
    __table_args__ = (
        Index("ix_recording_sessions_bot_id", "bot_id"),
        Index("ix_recording_sessions_account_id", "account_id"),
        Index("ix_recording_sessions_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    meeting_url: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    bot_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # JSON columns keep SQL NULL distinct from an empty document.
    transcript: Mapped[Optional[Any]] = mapped_column(JSON(none_as_null=True), nullable=True)
    recording_ref: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    summary: Mapped[Optional[Any]] = mapped_column(JSON(none_as_null=True), nullable=True)
    progress: Mapped[Any] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, session: RecordingSession) -> "RecordingSessionORM":
        orm = cls(id=session.id, created_at=session.created_at)
        orm.apply(session)
        return orm

    def apply(self, session: RecordingSession) -> None:
        """Copy every mutable field from the domain model onto this row."""

        self.meeting_url = session.meeting_url
        self.account_id = session.account_id
        self.status = session.status.value
        self.bot_id = session.bot_id
        self.transcript = session.transcript
        self.recording_ref = session.recording_ref
        self.summary = session.summary.model_dump(mode="json") if session.summary is not None else None
        self.progress = session.progress.model_dump(mode="json")
        self.updated_at = session.updated_at

    def to_domain(self) -> RecordingSession:
        return RecordingSession(
            id=self.id,
            meeting_url=self.meeting_url,
            account_id=self.account_id,
            status=SessionStatus(self.status),
            bot_id=self.bot_id,
            transcript=self.transcript,
            recording_ref=self.recording_ref,
            summary=MeetingSummary.model_validate(self.summary) if self.summary is not None else None,
            progress=SessionProgress.model_validate(self.progress),
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )
