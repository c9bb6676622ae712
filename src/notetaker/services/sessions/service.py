from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from src.notetaker.config import settings
from src.notetaker.domain.models.meeting_summary import MeetingSummary
from src.notetaker.domain.models.recording_session import (
    RecordingSession,
    SessionProgress,
    SessionStatus,
)
from src.notetaker.infra.db.repositories import SessionRepository
from src.notetaker.services.notetaker.client import (
    DispatchClient,
    NotetakerError,
    NotetakerTimeoutError,
    NotetakerUnavailableError,
)
from src.notetaker.services.sessions.reducer import EventReducer, event_from_notetaker
from src.notetaker.services.summary.generator import SummaryGenerator

logger = logging.getLogger("notetaker.sessions")

# The scheme is optional on input; stored links always carry one.
MEETING_URL_RE = re.compile(r"^(?:https?://)?meet\.google\.com/\S+$", re.IGNORECASE)

BOT_DEPLOYED_PROGRESS = SessionProgress(message="Bot deployed. Joining meeting...", percentage=20)
SUMMARY_REGENERATED_PROGRESS = SessionProgress(message="Summary regenerated successfully!", percentage=100)


class InvalidSessionRequestError(ValueError):
    pass


class SessionNotFoundError(LookupError):
    pass


class SummaryNotReadyError(Exception):
    def __init__(self, session: RecordingSession) -> None:
        super().__init__(f"Summary not available yet for session {session.id} (status: {session.status.value})")
        self.status = session.status


def generate_session_id() -> str:
    return f"meeting_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


def _required_text(value: Any, field: str) -> str:
    if value is not None and not isinstance(value, str):
        raise InvalidSessionRequestError(f"{field} must be a string")
    text = (value or "").strip()
    if not text:
        raise InvalidSessionRequestError(f"{field} is required")
    return text


class SessionService:
    """Registration, reads and resync for recording sessions.

    Lifecycle changes after creation go through the :class:`EventReducer`,
    including those discovered by polling the vendor.
    """

    def __init__(
        self,
        repository: SessionRepository,
        dispatch_client: DispatchClient,
        reducer: EventReducer,
        summary_generator: SummaryGenerator,
        *,
        resync_stale_seconds: Optional[float] = None,
    ) -> None:
        self._repository = repository
        self._dispatch_client = dispatch_client
        self._reducer = reducer
        self._summary_generator = summary_generator
        self._resync_stale_seconds = (
            resync_stale_seconds if resync_stale_seconds is not None else settings.resync_stale_seconds
        )

    def create_session(self, meeting_url: Any, account_id: Any) -> RecordingSession:
        meeting_url = _required_text(meeting_url, "meeting_url")
        account_id = _required_text(account_id, "account_id")
        if not MEETING_URL_RE.match(meeting_url):
            raise InvalidSessionRequestError("Invalid Google Meet URL")
        if "://" not in meeting_url:
            meeting_url = f"https://{meeting_url}"

        now = datetime.now(timezone.utc)
        session = RecordingSession(
            id=generate_session_id(),
            meeting_url=meeting_url,
            account_id=account_id,
            created_at=now,
            updated_at=now,
        )
        self._repository.add(session)
        logger.info("Registered session %s for %s", session.id, meeting_url)
        return session

    async def dispatch_bot(self, session_id: str) -> RecordingSession:
        """Send the vendor's bot into the session's meeting.

        A dispatch failure marks the session failed with the error message
        instead of raising. The deployed id always wins: a bot-created webhook
        that arrived first may have been matched by account to a different
        session of the same account, so that session is unlinked again.
        """

        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        try:
            info = await self._dispatch_client.deploy_notetaker(session.account_id, session.meeting_url)
        except Exception as exc:
            logger.exception("Error deploying notetaker for session %s", session_id)
            failed = self._repository.update(
                session_id,
                skip_if_terminal=True,
                status=SessionStatus.FAILED,
                progress=SessionProgress(message=f"Error: {exc}", percentage=0),
            )
            return failed or session

        holder = self._repository.get_by_bot_id(info.id)
        if holder is not None and holder.id != session_id:
            logger.warning(
                "Notetaker %s was linked to session %s by account; moving it to %s",
                info.id,
                holder.id,
                session_id,
            )
            self._repository.update(holder.id, bot_id=None)

        current = self._repository.get(session_id) or session
        changes: Dict[str, Any] = {}
        if current.bot_id != info.id:
            if current.bot_id is not None:
                logger.warning(
                    "Session %s was linked to notetaker %s; replacing it with deployed id %s",
                    session_id,
                    current.bot_id,
                    info.id,
                )
            changes["bot_id"] = info.id
        if current.status == SessionStatus.PENDING:
            changes["status"] = SessionStatus.JOINING
            changes["progress"] = BOT_DEPLOYED_PROGRESS
        if not changes:
            return current
        return self._repository.update(session_id, skip_if_terminal=True, **changes) or current

    async def register_meeting(self, meeting_url: Any, account_id: Any) -> RecordingSession:
        session = self.create_session(meeting_url, account_id)
        return await self.dispatch_bot(session.id)

    async def get_session(self, session_id: str) -> Optional[RecordingSession]:
        """Return the session, refreshing it from the vendor when it looks stale.

        Webhooks are the authoritative channel; polling is only a fallback, so
        any polling failure is logged and the stored record returned as-is.
        """

        session = self._repository.get(session_id)
        if session is None or session.is_terminal or not session.bot_id:
            return session

        age = (datetime.now(timezone.utc) - session.updated_at).total_seconds()
        if age < self._resync_stale_seconds:
            return session
        return await self._resync(session)

    async def resync_session(self, session_id: str) -> Optional[RecordingSession]:
        session = self._repository.get(session_id)
        if session is None or session.is_terminal or not session.bot_id:
            return session
        return await self._resync(session)

    async def _resync(self, session: RecordingSession) -> RecordingSession:
        try:
            info = await self._dispatch_client.get_notetaker(session.account_id, session.bot_id or "")
        except (NotetakerTimeoutError, NotetakerUnavailableError) as exc:
            logger.warning("Status check for session %s timed out (webhooks will provide updates): %s", session.id, exc)
            return session
        except NotetakerError as exc:
            logger.error("Error checking notetaker status for session %s: %s", session.id, exc)
            return session

        event = event_from_notetaker(info)
        if event is None:
            logger.debug("Polled notetaker state for session %s carries no transition", session.id)
            return session
        try:
            await self._reducer.reduce(event)
        except Exception:
            logger.exception("Error applying polled status to session %s", session.id)
        return self._repository.get(session.id) or session

    def list_sessions(self) -> List[RecordingSession]:
        return self._repository.list_all()

    def get_summary(self, session_id: str) -> Tuple[MeetingSummary, Optional[Dict[str, Any]]]:
        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.summary is None:
            raise SummaryNotReadyError(session)
        return session.summary, session.transcript

    async def regenerate_summary(self, session_id: str) -> MeetingSummary:
        """Rebuild the summary from the transcript (administrative).

        Allowed on terminal sessions. The transcript is fetched from the
        vendor when the session does not have one stored yet.
        """

        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        transcript = session.transcript
        if transcript is None:
            transcript = await self._reducer.fetch_transcript_from_vendor(session)
        if transcript is None:
            raise SummaryNotReadyError(session)

        summary = await run_in_threadpool(self._summary_generator.generate, transcript)
        if session.summary is not None:
            summary = summary.model_copy(
                update={
                    "vendor_summary_url": session.summary.vendor_summary_url,
                    "vendor_action_items_url": session.summary.vendor_action_items_url,
                }
            )
        self._repository.update(
            session_id,
            transcript=transcript,
            summary=summary,
            status=SessionStatus.COMPLETED,
            progress=SUMMARY_REGENERATED_PROGRESS,
        )
        logger.info("Regenerated summary for session %s (%s)", session_id, summary.generated_by)
        return summary
