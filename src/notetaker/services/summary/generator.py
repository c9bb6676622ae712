from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from src.notetaker.domain.models.meeting_summary import MeetingSummary
from src.notetaker.domain.models.transcript import Transcript
from src.notetaker.services.summary.backends import (
    BasicSummaryBackend,
    SummaryBackend,
    empty_summary,
    get_summary_backend_from_env,
)

logger = logging.getLogger("notetaker.summary")


class SummaryGenerator:
    """Transcript document → MeetingSummary; never raises.

    Whatever the configured backend does wrong (missing key, timeout, quota,
    malformed reply), the caller receives the basic extractive summary.
    """

    def __init__(self, backend: Optional[SummaryBackend] = None) -> None:
        self._backend = backend or get_summary_backend_from_env()
        self._fallback = BasicSummaryBackend()

    def generate(self, document: Optional[Mapping[str, Any]]) -> MeetingSummary:
        try:
            transcript = Transcript.from_document(document)
        except Exception:
            logger.exception("Unreadable transcript document; treating it as empty")
            return empty_summary()

        if not transcript.segments:
            return empty_summary()

        if not isinstance(self._backend, BasicSummaryBackend):
            try:
                return self._backend.summarize(transcript)
            except Exception as exc:
                logger.warning("Enriched summary failed (%s); falling back to basic summary", exc)

        return self._fallback.summarize(transcript)
