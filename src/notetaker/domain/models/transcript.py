from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel


def _round_half_up(value: float) -> int:
    # 12.5s reads as 13s, not the banker's-rounded 12s.
    return math.floor(value + 0.5)


class TranscriptSegment(BaseModel):
    """One speaker-attributed chunk of a vendor transcript.

    ``start``/``end`` are milliseconds from the start of the recording. Some
    transcript variants carry ``end_time`` in seconds instead.
    """

    speaker: Optional[str] = None
    text: str = ""
    start: Optional[float] = None
    end: Optional[float] = None
    end_time: Optional[float] = None


class Transcript(BaseModel):
    type: Optional[str] = None
    segments: List[TranscriptSegment] = []

    @classmethod
    def from_document(cls, document: Optional[Mapping[str, Any]]) -> "Transcript":
        """Parse a vendor transcript document, tolerating partial shapes.

        Accepts ``{"type": ..., "transcript": [...]}`` directly or wrapped in
        the vendor's ``{"data": {...}}`` envelope. Malformed segments are
        skipped rather than failing the whole document.
        """

        if not document:
            return cls()
        if isinstance(document.get("data"), Mapping):
            document = document["data"]

        raw_segments = document.get("transcript")
        segments: List[TranscriptSegment] = []
        if isinstance(raw_segments, list):
            for item in raw_segments:
                if not isinstance(item, Mapping):
                    continue
                try:
                    segments.append(TranscriptSegment.model_validate(dict(item)))
                except ValueError:
                    continue
        return cls(type=document.get("type"), segments=segments)

    @property
    def full_text(self) -> str:
        return " ".join(segment.text or "" for segment in self.segments).strip()

    @property
    def participants(self) -> List[str]:
        seen: List[str] = []
        for segment in self.segments:
            if segment.speaker and segment.speaker not in seen:
                seen.append(segment.speaker)
        return seen

    @property
    def duration_seconds(self) -> int:
        if not self.segments:
            return 0
        last = self.segments[-1]
        if last.end:
            return _round_half_up(last.end / 1000)
        if last.end_time:
            return _round_half_up(last.end_time)
        return 0

    @property
    def word_count(self) -> int:
        return len(self.full_text.split())
