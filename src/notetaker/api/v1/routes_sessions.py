from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field

from src.notetaker.dependencies import get_session_service
from src.notetaker.domain.models.meeting_summary import MeetingSummary
from src.notetaker.domain.models.recording_session import RecordingSession, SessionProgress, SessionStatus
from src.notetaker.services.audit.service import audit_service
from src.notetaker.services.sessions.service import (
    InvalidSessionRequestError,
    SessionNotFoundError,
    SessionService,
    SummaryNotReadyError,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class CreateSessionRequest(BaseModel):
    # Left untyped so that missing or non-string fields are reported as 400 by
    # the service rather than as a schema error.
    meeting_url: Any = Field(None, validation_alias=AliasChoices("meeting_url", "meetingUrl"))
    account_id: Any = Field(
        None,
        validation_alias=AliasChoices("account_id", "accountId", "grant_id", "grantId"),
    )


class SessionOverview(BaseModel):
    id: str
    meeting_url: str
    status: SessionStatus
    progress: SessionProgress
    bot_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SessionListResponse(BaseModel):
    sessions: List[SessionOverview]


class SessionSummaryResponse(BaseModel):
    summary: MeetingSummary
    transcript: Optional[Dict[str, Any]] = None


class RegenerateSummaryResponse(BaseModel):
    summary: MeetingSummary


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


@router.post("/", response_model=RecordingSession, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CreateSessionRequest,
    service: SessionService = Depends(get_session_service),
) -> RecordingSession:
    """Register a meeting link and dispatch the notetaker bot.

    Dispatch failures do not fail the request: the session is returned with
    status ``failed`` and the dispatch error as its progress message.
    """

    try:
        session = await service.register_meeting(payload.meeting_url, payload.account_id)
    except InvalidSessionRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    audit_service.log_event(
        action="create_session",
        resource_type="recording_session",
        resource_id=session.id,
        extra={"status": session.status.value},
    )
    return session


@router.get("/", response_model=SessionListResponse)
async def list_sessions(service: SessionService = Depends(get_session_service)) -> SessionListResponse:
    sessions = service.list_sessions()
    audit_service.log_event(
        action="list_sessions",
        resource_type="recording_session",
        extra={"count": len(sessions)},
    )
    return SessionListResponse(sessions=[SessionOverview.model_validate(s.model_dump()) for s in sessions])


@router.get("/{session_id}", response_model=RecordingSession)
async def get_session(session_id: str, service: SessionService = Depends(get_session_service)) -> RecordingSession:
    session = await service.get_session(session_id)
    if session is None:
        raise _not_found()

    audit_service.log_event(
        action="get_session",
        resource_type="recording_session",
        resource_id=session_id,
    )
    return session


@router.get("/{session_id}/summary", response_model=SessionSummaryResponse)
async def get_session_summary(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> SessionSummaryResponse:
    try:
        summary, transcript = service.get_summary(session_id)
    except SessionNotFoundError as exc:
        raise _not_found() from exc
    except SummaryNotReadyError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Summary not available yet. Meeting may still be in progress (status: {exc.status.value}).",
        ) from exc

    audit_service.log_event(
        action="get_session_summary",
        resource_type="recording_session",
        resource_id=session_id,
    )
    return SessionSummaryResponse(summary=summary, transcript=transcript)


@router.post("/{session_id}/resync", response_model=RecordingSession)
async def resync_session(session_id: str, service: SessionService = Depends(get_session_service)) -> RecordingSession:
    """Poll the vendor for the bot's current state and apply it."""

    session = await service.resync_session(session_id)
    if session is None:
        raise _not_found()

    audit_service.log_event(
        action="resync_session",
        resource_type="recording_session",
        resource_id=session_id,
        extra={"status": session.status.value},
    )
    return session


@router.post("/{session_id}/regenerate-summary", response_model=RegenerateSummaryResponse)
async def regenerate_summary(
    session_id: str,
    service: SessionService = Depends(get_session_service),
) -> RegenerateSummaryResponse:
    try:
        summary = await service.regenerate_summary(session_id)
    except SessionNotFoundError as exc:
        raise _not_found() from exc
    except SummaryNotReadyError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No transcript available to generate a summary from",
        ) from exc

    audit_service.log_event(
        action="regenerate_summary",
        resource_type="recording_session",
        resource_id=session_id,
        extra={"generated_by": summary.generated_by},
    )
    return RegenerateSummaryResponse(summary=summary)
