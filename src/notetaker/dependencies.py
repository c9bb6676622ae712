from __future__ import annotations

from threading import Lock
from typing import Optional

from fastapi import Depends

from src.notetaker.config import settings
from src.notetaker.infra.db.bootstrap import build_session_repository
from src.notetaker.infra.db.repositories import SessionRepository
from src.notetaker.infra.storage.recordings import (
    LocalRecordingStorageBackend,
    PassthroughRecordingStorage,
    RecordingStorageBackend,
)
from src.notetaker.services.notetaker.client import DispatchClient, NotetakerClient
from src.notetaker.services.sessions.reducer import EventReducer
from src.notetaker.services.sessions.service import SessionService
from src.notetaker.services.summary.generator import SummaryGenerator

# Process-wide collaborators, built on first use. Tests replace them through
# ``app.dependency_overrides`` rather than touching these directly.
_lock: Lock = Lock()
_repository: Optional[SessionRepository] = None
_dispatch_client: Optional[NotetakerClient] = None
_summary_generator: Optional[SummaryGenerator] = None


def get_session_repository() -> SessionRepository:
    global _repository
    with _lock:
        if _repository is None:
            _repository = build_session_repository()
    return _repository


def get_dispatch_client() -> DispatchClient:
    global _dispatch_client
    with _lock:
        if _dispatch_client is None:
            _dispatch_client = NotetakerClient()
    return _dispatch_client


def get_summary_generator() -> SummaryGenerator:
    global _summary_generator
    with _lock:
        if _summary_generator is None:
            _summary_generator = SummaryGenerator()
    return _summary_generator


def get_recording_storage(
    dispatch_client: DispatchClient = Depends(get_dispatch_client),
) -> RecordingStorageBackend:
    if settings.archive_recordings:
        return LocalRecordingStorageBackend(dispatch_client.download_media_bytes)
    return PassthroughRecordingStorage()


def get_event_reducer(
    repository: SessionRepository = Depends(get_session_repository),
    dispatch_client: DispatchClient = Depends(get_dispatch_client),
    summary_generator: SummaryGenerator = Depends(get_summary_generator),
    recording_storage: RecordingStorageBackend = Depends(get_recording_storage),
) -> EventReducer:
    return EventReducer(repository, dispatch_client, summary_generator, recording_storage)


def get_session_service(
    repository: SessionRepository = Depends(get_session_repository),
    dispatch_client: DispatchClient = Depends(get_dispatch_client),
    reducer: EventReducer = Depends(get_event_reducer),
    summary_generator: SummaryGenerator = Depends(get_summary_generator),
) -> SessionService:
    return SessionService(repository, dispatch_client, reducer, summary_generator)


async def close_dependencies() -> None:
    """Release network resources held by the process-wide collaborators."""

    global _dispatch_client
    with _lock:
        client, _dispatch_client = _dispatch_client, None
    if client is not None:
        await client.aclose()
