from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from src.notetaker.dependencies import get_dispatch_client, get_session_repository, get_summary_generator
from src.notetaker.domain.models.recording_session import RecordingSession, SessionProgress, SessionStatus
from src.notetaker.infra.db.inmemory import InMemorySessionRepository
from src.notetaker.main import app
from src.notetaker.services.notetaker.client import NotetakerInfo, NotetakerNotFoundError
from src.notetaker.services.sessions.reducer import EventReducer
from src.notetaker.services.sessions.service import SessionService
from src.notetaker.services.summary.backends import BasicSummaryBackend
from src.notetaker.services.summary.generator import SummaryGenerator

MEETING_URL = "https://meet.google.com/abc-defg-hij"
GRANT_ID = "grant-1"
TRANSCRIPT_URL = "https://media.example.com/transcript.json"
RECORDING_URL = "https://media.example.com/recording.mp4"

TRANSCRIPT_DOC: Dict[str, Any] = {
    "type": "speaker_labelled",
    "transcript": [
        {"speaker": "Alice", "text": "Welcome everyone to the planning meeting.", "start": 0, "end": 4000},
        {
            "speaker": "Bob",
            "text": "The important decision is to ship the beta next Friday.",
            "start": 4000,
            "end": 9000,
        },
        {"speaker": "Alice", "text": "Who owns the release notes?", "start": 9000, "end": 12400},
    ],
}


class FakeDispatchClient:
    """In-process stand-in for the vendor API.

    Tests configure the canned responses and failures they need; every call
    is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.next_bot_id = "bot-1"
        self.deploy_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.media_error: Optional[Exception] = None
        self.notetakers: Dict[str, NotetakerInfo] = {}
        self.transcripts: Dict[str, Dict[str, Any]] = {}
        self.recordings: Dict[str, Dict[str, Any]] = {}
        self.media_documents: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    async def deploy_notetaker(self, grant_id: str, meeting_url: str) -> NotetakerInfo:
        self.calls.append(("deploy_notetaker", (grant_id, meeting_url)))
        if self.deploy_error is not None:
            raise self.deploy_error
        return NotetakerInfo(id=self.next_bot_id, grant_id=grant_id, state="scheduled")

    async def get_notetaker(self, grant_id: str, notetaker_id: str) -> NotetakerInfo:
        self.calls.append(("get_notetaker", (grant_id, notetaker_id)))
        if self.status_error is not None:
            raise self.status_error
        if notetaker_id not in self.notetakers:
            raise NotetakerNotFoundError("Failed to get notetaker status: not found")
        return self.notetakers[notetaker_id]

    async def get_transcript(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:
        self.calls.append(("get_transcript", (grant_id, notetaker_id)))
        if notetaker_id not in self.transcripts:
            raise NotetakerNotFoundError("Failed to get transcript: not found")
        return self.transcripts[notetaker_id]

    async def get_recording(self, grant_id: str, notetaker_id: str) -> Dict[str, Any]:
        self.calls.append(("get_recording", (grant_id, notetaker_id)))
        if notetaker_id not in self.recordings:
            raise NotetakerNotFoundError("Failed to get recording: not found")
        return self.recordings[notetaker_id]

    async def fetch_media_document(self, url: str) -> Dict[str, Any]:
        self.calls.append(("fetch_media_document", (url,)))
        if self.media_error is not None:
            raise self.media_error
        if url not in self.media_documents:
            raise NotetakerNotFoundError("Failed to download media: not found")
        return self.media_documents[url]

    async def download_media_bytes(self, url: str) -> bytes:
        self.calls.append(("download_media_bytes", (url,)))
        return b"\x00\x00\x00\x18ftypmp42"

    def called(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


def add_session(
    repository: InMemorySessionRepository,
    session_id: str = "meeting_1",
    *,
    status: SessionStatus = SessionStatus.PENDING,
    bot_id: Optional[str] = None,
    account_id: str = GRANT_ID,
    created_at: Optional[datetime] = None,
    age_seconds: float = 0,
    percentage: int = 0,
) -> RecordingSession:
    now = datetime.now(timezone.utc)
    stamp = now - timedelta(seconds=age_seconds)
    session = RecordingSession(
        id=session_id,
        meeting_url=MEETING_URL,
        account_id=account_id,
        status=status,
        bot_id=bot_id,
        progress=SessionProgress(message="seeded", percentage=percentage),
        created_at=created_at or stamp,
        updated_at=stamp,
    )
    return repository.add(session)


def webhook(event_type: str, **obj: Any) -> Dict[str, Any]:
    return {"type": event_type, "data": {"object": obj}}


@pytest.fixture
def repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def dispatch_client() -> FakeDispatchClient:
    return FakeDispatchClient()


@pytest.fixture
def summary_generator() -> SummaryGenerator:
    return SummaryGenerator(BasicSummaryBackend())


@pytest.fixture
def reducer(repository, dispatch_client, summary_generator) -> EventReducer:
    return EventReducer(repository, dispatch_client, summary_generator)


@pytest.fixture
def service(repository, dispatch_client, reducer, summary_generator) -> SessionService:
    return SessionService(repository, dispatch_client, reducer, summary_generator, resync_stale_seconds=30)


@pytest.fixture
async def client(repository, dispatch_client, summary_generator):
    app.dependency_overrides[get_session_repository] = lambda: repository
    app.dependency_overrides[get_dispatch_client] = lambda: dispatch_client
    app.dependency_overrides[get_summary_generator] = lambda: summary_generator
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
