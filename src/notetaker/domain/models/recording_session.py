from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.notetaker.domain.models.meeting_summary import MeetingSummary


class SessionStatus(str, Enum):
    PENDING = "pending"
    JOINING = "joining"
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Lifecycle events never move a session out of these statuses.
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})


class SessionProgress(BaseModel):
    message: str
    percentage: int = Field(ge=0, le=100)


INITIAL_PROGRESS = SessionProgress(message="Meeting link added. Waiting to join...", percentage=0)


class RecordingSession(BaseModel):
    """One tracked meeting-recording lifecycle.

    Created in ``pending`` when a meeting link is registered, then advanced by
    the event reducer as the vendor's notetaker bot joins, records and
    delivers media. ``bot_id`` becomes the join key for vendor events as soon
    as it is known.
    """

    id: str
    meeting_url: str
    # Vendor grant identifying the account that dispatched the bot.
    account_id: str
    status: SessionStatus = SessionStatus.PENDING
    bot_id: Optional[str] = None
    # Raw transcript document as delivered by the vendor.
    transcript: Optional[Dict[str, Any]] = None
    recording_ref: Optional[str] = None
    summary: Optional[MeetingSummary] = None
    progress: SessionProgress = Field(default_factory=lambda: INITIAL_PROGRESS.model_copy())
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
