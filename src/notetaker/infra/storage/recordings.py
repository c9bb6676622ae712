from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable, Optional

from src.notetaker.config import settings

logger = logging.getLogger("notetaker.storage")

MediaDownloader = Callable[[str], Awaitable[bytes]]


class RecordingStorageBackend(ABC):
    @abstractmethod
    async def archive(self, session_id: str, recording_url: str) -> str:
        """Store a recording and return the best reference to it.

        Must not raise: any failure returns ``recording_url`` unchanged.
        """


class PassthroughRecordingStorage(RecordingStorageBackend):
    """Keeps the vendor's recording URL as the session's reference."""

    async def archive(self, session_id: str, recording_url: str) -> str:
        return recording_url


class LocalRecordingStorageBackend(RecordingStorageBackend):
    def __init__(self, downloader: MediaDownloader, base_dir: Optional[Path] = None) -> None:
        self._download = downloader
        self._base: Path = base_dir or settings.recordings_dir

    async def archive(self, session_id: str, recording_url: str) -> str:
        try:
            content = await self._download(recording_url)
            self._base.mkdir(parents=True, exist_ok=True)
            dest_path = self._base / f"{session_id}.mp4"
            dest_path.write_bytes(content)
        except Exception as exc:
            logger.warning("Recording archival failed for session %s (%s); keeping vendor URL", session_id, exc)
            return recording_url

        logger.info("Archived recording for session %s at %s", session_id, dest_path)
        return str(dest_path)
