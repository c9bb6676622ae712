from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from starlette.concurrency import run_in_threadpool

from src.notetaker.domain.models.notetaker_event import EventType, MediaRefs, NotetakerEvent, normalize_event
from src.notetaker.domain.models.recording_session import RecordingSession, SessionProgress, SessionStatus
from src.notetaker.infra.db.repositories import SessionRepository
from src.notetaker.infra.storage.recordings import PassthroughRecordingStorage, RecordingStorageBackend
from src.notetaker.services.notetaker.client import DispatchClient, NotetakerError, NotetakerInfo
from src.notetaker.services.summary.generator import SummaryGenerator

logger = logging.getLogger("notetaker.reducer")


@dataclass(frozen=True)
class Transition:
    """Target of one event: new status and progress.

    ``status=None`` leaves the status alone and ``percentage=None`` leaves the
    progress alone; a transition with neither is informational only.
    """

    status: Optional[SessionStatus]
    percentage: Optional[int]
    message: str = ""

    @property
    def is_informational(self) -> bool:
        return self.status is None and self.percentage is None


_JOINING = SessionStatus.JOINING
_RECORDING = SessionStatus.RECORDING
_PROCESSING = SessionStatus.PROCESSING
_FAILED = SessionStatus.FAILED

MEETING_STATE_TRANSITIONS: Dict[str, Transition] = {
    "dispatched": Transition(_JOINING, 25, "Notetaker dispatched. Joining meeting..."),
    "connecting": Transition(_JOINING, 30, "Connecting to meeting..."),
    "waiting_for_entry": Transition(_JOINING, 35, "Waiting to be admitted to the meeting..."),
    "attending": Transition(_RECORDING, 60, "In meeting. Recording..."),
    "recording_active": Transition(_RECORDING, 60, "In meeting. Recording..."),
    "recording_started": Transition(_RECORDING, 60, "In meeting. Recording..."),
    "left_meeting": Transition(_PROCESSING, 80, "Meeting ended. Processing recording..."),
    "disconnected": Transition(_PROCESSING, 80, "Meeting ended. Processing recording..."),
    "meeting_ended": Transition(_PROCESSING, 80, "Meeting ended. Processing recording..."),
    "no_meeting_activity": Transition(_PROCESSING, 80, "Left due to inactivity. Processing recording..."),
    "no_participants": Transition(_PROCESSING, 80, "Left after participants left. Processing recording..."),
    "api_request": Transition(_PROCESSING, 80, "Recording stopped. Processing..."),
    "bad_meeting_code": Transition(_FAILED, 0, "Failed to join meeting: invalid meeting code"),
    "failed_entry": Transition(_FAILED, 0, "Failed to join meeting"),
    "entry_denied": Transition(_FAILED, 0, "Failed to join meeting: entry denied"),
    "no_response": Transition(_FAILED, 0, "Failed to join meeting: no response from host"),
    "kicked": Transition(_FAILED, 0, "Notetaker was removed from the meeting"),
    "internal_error": Transition(_FAILED, 0, "Notetaker encountered an internal error"),
}

MEDIA_STATE_TRANSITIONS: Dict[str, Transition] = {
    "processing": Transition(_PROCESSING, 85, "Processing media files..."),
    "error": Transition(_FAILED, 0, "Media processing failed"),
    "deleted": Transition(None, None),
}

EVENT_TRANSITIONS: Dict[str, Transition] = {
    EventType.DELETED: Transition(_FAILED, 0, "Notetaker was cancelled"),
    EventType.UPDATED: Transition(None, None),
    EventType.LEGACY_JOINED: Transition(_RECORDING, 50, "Bot joined meeting. Recording..."),
    EventType.LEGACY_RECORDING: Transition(_RECORDING, 70, "Recording in progress..."),
    EventType.LEGACY_FAILED: Transition(_FAILED, 0, "Failed to record meeting"),
}

CREATED_TRANSITION = Transition(_JOINING, 20, "Notetaker created. Waiting to join meeting...")
UNKNOWN_PERCENTAGE = 50

MEDIA_AVAILABLE_PROGRESS = SessionProgress(message="Media files available. Generating summary...", percentage=90)
LEGACY_COMPLETED_PROGRESS = SessionProgress(message="Meeting completed. Generating summary...", percentage=90)
SUMMARY_READY_PROGRESS = SessionProgress(message="Summary generated successfully!", percentage=100)
SUMMARY_ERROR_PROGRESS = SessionProgress(message="Error generating summary", percentage=0)

# Sessions still at or before this point are moved to "joining" by a
# bot-created event; later sessions only pick up the bot id.
_PRE_JOIN_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.JOINING})


class ReductionOutcome(str, Enum):
    APPLIED = "applied"
    # No session matched the event.
    DROPPED = "dropped"
    # A session matched but nothing changed (terminal or informational).
    IGNORED = "ignored"


@dataclass
class ReductionResult:
    outcome: ReductionOutcome
    session: Optional[RecordingSession] = None
    reason: str = ""


def event_from_notetaker(info: NotetakerInfo) -> Optional[NotetakerEvent]:
    """Translate a polled notetaker object into the equivalent lifecycle event.

    Lets status resync reuse the same transition table as webhooks. Returns
    ``None`` when the polled state carries no information (e.g. "scheduled").
    """

    state = (info.state or "").lower()
    status = (info.status or "").lower()
    meeting_state = (info.meeting_state or "").lower()
    obj: Dict[str, Any] = {"id": info.id, "grant_id": info.grant_id, "media": info.media}

    if state.startswith("media_"):
        obj["state"] = state[len("media_"):]
        return normalize_event({"type": EventType.MEDIA, "data": {"object": obj}})
    for candidate in (meeting_state, state):
        if candidate in MEETING_STATE_TRANSITIONS:
            obj["meeting_state"] = candidate
            return normalize_event({"type": EventType.MEETING_STATE, "data": {"object": obj}})

    legacy = {
        "joined": EventType.LEGACY_JOINED,
        "recording": EventType.LEGACY_RECORDING,
        "completed": EventType.LEGACY_COMPLETED,
        "failed": EventType.LEGACY_FAILED,
    }
    if status in legacy:
        return normalize_event({"type": legacy[status], "data": {"object": obj}})
    return None


class EventReducer:
    """Folds vendor lifecycle events into session records.

    Each call resolves the event to at most one session, looks the transition
    up in the tables above and writes it as a full replace of the affected
    fields, so replaying an event is harmless. Completed and failed sessions
    are never moved by lifecycle events; the store re-checks that at write
    time with ``skip_if_terminal``.
    """

    def __init__(
        self,
        repository: SessionRepository,
        dispatch_client: DispatchClient,
        summary_generator: SummaryGenerator,
        recording_storage: Optional[RecordingStorageBackend] = None,
    ) -> None:
        self._repository = repository
        self._dispatch_client = dispatch_client
        self._summary_generator = summary_generator
        self._recording_storage = recording_storage or PassthroughRecordingStorage()

    async def handle_event_safely(self, payload: Any) -> Optional[ReductionResult]:
        """Background-task entry point for webhook deliveries.

        The delivery has already been acknowledged, so nothing may propagate
        from here; failures are logged and the delivery is abandoned. Bodies
        that are not JSON objects are dropped.
        """

        if not isinstance(payload, Mapping):
            logger.warning("Dropping webhook delivery with a %s body", type(payload).__name__)
            return None
        try:
            return await self.reduce(normalize_event(payload))
        except Exception:
            logger.exception("Error processing webhook event type=%r", payload.get("type"))
            return None

    def resolve(self, event: NotetakerEvent) -> Optional[RecordingSession]:
        if event.notetaker_id:
            session = self._repository.get_by_bot_id(event.notetaker_id)
            if session is not None:
                return session
        if event.type == EventType.CREATED and event.grant_id:
            return self._repository.find_latest_unassigned(event.grant_id)
        return None

    async def reduce(self, event: NotetakerEvent) -> ReductionResult:
        session = self.resolve(event)
        if session is None:
            logger.info(
                "Dropping %s event: no session for notetaker=%s grant=%s",
                event.type or "<untyped>",
                event.notetaker_id,
                event.grant_id,
            )
            return ReductionResult(ReductionOutcome.DROPPED, reason="no matching session")

        if session.is_terminal:
            logger.info("Ignoring %s event for %s session %s", event.type, session.status.value, session.id)
            return ReductionResult(ReductionOutcome.IGNORED, session, reason="session is terminal")

        if event.type == EventType.CREATED:
            return self._apply_created(session, event)

        if event.type == EventType.MEETING_STATE:
            state = (event.meeting_state or "").lower()
            transition = MEETING_STATE_TRANSITIONS.get(state)
            if transition is None:
                logger.warning("Unknown meeting state %r for session %s", event.meeting_state, session.id)
                transition = Transition(None, UNKNOWN_PERCENTAGE, f"Meeting state: {event.meeting_state}")
            return self._apply(session, transition)

        if event.type == EventType.MEDIA:
            state = (event.state or "").lower()
            if state == "available" or (not state and not event.media.is_empty):
                return await self.complete(session, event.media)
            transition = MEDIA_STATE_TRANSITIONS.get(state)
            if transition is None:
                logger.warning("Unknown media state %r for session %s", event.state, session.id)
                transition = Transition(None, UNKNOWN_PERCENTAGE, f"Media state: {event.state}")
            return self._apply(session, transition)

        if event.type == EventType.LEGACY_COMPLETED:
            return await self.complete(session, event.media, progress=LEGACY_COMPLETED_PROGRESS)

        transition = EVENT_TRANSITIONS.get(event.type)
        if transition is None:
            logger.warning("Unknown webhook event type %r for session %s", event.type, session.id)
            transition = Transition(None, UNKNOWN_PERCENTAGE, f"Unrecognized event: {event.type}")
        return self._apply(session, transition)

    def _apply(self, session: RecordingSession, transition: Transition) -> ReductionResult:
        if transition.is_informational:
            return ReductionResult(ReductionOutcome.IGNORED, session, reason="informational event")

        changes: Dict[str, Any] = {}
        if transition.status is not None:
            changes["status"] = transition.status
        if transition.percentage is not None:
            changes["progress"] = SessionProgress(message=transition.message, percentage=transition.percentage)
        return self._write(session, changes)

    def _apply_created(self, session: RecordingSession, event: NotetakerEvent) -> ReductionResult:
        changes: Dict[str, Any] = {}
        if session.bot_id is None and event.notetaker_id:
            changes["bot_id"] = event.notetaker_id
            logger.info("Linked notetaker %s to session %s", event.notetaker_id, session.id)
        if session.status in _PRE_JOIN_STATUSES:
            changes["status"] = CREATED_TRANSITION.status
            changes["progress"] = SessionProgress(
                message=CREATED_TRANSITION.message,
                percentage=CREATED_TRANSITION.percentage,
            )
        if not changes:
            return ReductionResult(ReductionOutcome.IGNORED, session, reason="session already past joining")
        return self._write(session, changes)

    def _write(self, session: RecordingSession, changes: Dict[str, Any]) -> ReductionResult:
        updated = self._repository.update(session.id, skip_if_terminal=True, **changes)
        if updated is None:
            return ReductionResult(ReductionOutcome.DROPPED, reason="session disappeared")
        if updated.is_terminal and changes.get("status") != updated.status:
            # A concurrent write made the session terminal first.
            return ReductionResult(ReductionOutcome.IGNORED, updated, reason="session is terminal")
        logger.info(
            "Session %s -> %s (%s%%) %s",
            updated.id,
            updated.status.value,
            updated.progress.percentage,
            updated.progress.message,
        )
        return ReductionResult(ReductionOutcome.APPLIED, updated)

    async def materialize_transcript(self, media: MediaRefs) -> Optional[Dict[str, Any]]:
        """Download the transcript from the URL delivered with the event."""

        if not media.transcript:
            return None
        try:
            document = await self._dispatch_client.fetch_media_document(media.transcript)
        except NotetakerError as exc:
            logger.warning("Could not download transcript from media URL: %s", exc)
            return None
        return document or None

    async def fetch_transcript_from_vendor(self, session: RecordingSession) -> Optional[Dict[str, Any]]:
        """Ask the vendor API for the transcript of the session's notetaker."""

        if not session.bot_id:
            return None
        try:
            document = await self._dispatch_client.get_transcript(session.account_id, session.bot_id)
        except NotetakerError as exc:
            logger.warning("Could not fetch transcript for session %s from vendor API: %s", session.id, exc)
            return None
        return document or None

    async def fetch_recording_reference(self, session: RecordingSession) -> Optional[str]:
        """Look up the recording URL when the media event did not carry one."""

        if not session.bot_id:
            return None
        try:
            recording = await self._dispatch_client.get_recording(session.account_id, session.bot_id)
        except NotetakerError as exc:
            logger.info("No recording reference for session %s: %s", session.id, exc)
            return None
        url = recording.get("url")
        return url if isinstance(url, str) and url else None

    async def complete(
        self,
        session: RecordingSession,
        media: MediaRefs,
        *,
        progress: SessionProgress = MEDIA_AVAILABLE_PROGRESS,
    ) -> ReductionResult:
        """Run the media-available completion sequence for ``session``.

        Transcript sources are tried in order: the copy already stored on the
        session, the URL delivered with the event, then the vendor API. When
        none yields a transcript the session stays in ``processing`` with an
        error message so a later resync can still finish it.
        """

        current = self._repository.update(
            session.id,
            skip_if_terminal=True,
            status=SessionStatus.PROCESSING,
            progress=progress,
        )
        if current is None or current.is_terminal:
            return ReductionResult(ReductionOutcome.IGNORED, current, reason="session is terminal")

        transcript = current.transcript
        if transcript is None:
            transcript = await self.materialize_transcript(media)
        if transcript is None:
            logger.info("No transcript in media payload for session %s; asking vendor API", current.id)
            transcript = await self.fetch_transcript_from_vendor(current)
        if transcript is None:
            failed = self._repository.update(current.id, skip_if_terminal=True, progress=SUMMARY_ERROR_PROGRESS)
            logger.error("Transcript unavailable for session %s; leaving it in processing", current.id)
            return ReductionResult(ReductionOutcome.APPLIED, failed, reason="transcript unavailable")

        summary = await run_in_threadpool(self._summary_generator.generate, transcript)
        summary = summary.model_copy(
            update={
                "vendor_summary_url": media.summary or summary.vendor_summary_url,
                "vendor_action_items_url": media.action_items or summary.vendor_action_items_url,
            }
        )

        changes: Dict[str, Any] = {
            "transcript": transcript,
            "summary": summary,
            "status": SessionStatus.COMPLETED,
            "progress": SUMMARY_READY_PROGRESS,
        }
        recording_url = media.recording or await self.fetch_recording_reference(current)
        if recording_url:
            changes["recording_ref"] = await self._recording_storage.archive(current.id, recording_url)

        return self._write(current, changes)
