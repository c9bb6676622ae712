from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel


class EventType:
    """Vendor webhook trigger names for notetaker lifecycle events."""

    CREATED = "notetaker.created"
    UPDATED = "notetaker.updated"
    DELETED = "notetaker.deleted"
    MEETING_STATE = "notetaker.meeting_state"
    MEDIA = "notetaker.media"

    # Older, flat vocabulary without meeting-state sub-fields.
    LEGACY_JOINED = "notetaker.joined"
    LEGACY_RECORDING = "notetaker.recording"
    LEGACY_COMPLETED = "notetaker.completed"
    LEGACY_FAILED = "notetaker.failed"


class MediaRefs(BaseModel):
    transcript: Optional[str] = None
    recording: Optional[str] = None
    summary: Optional[str] = None
    action_items: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.transcript or self.recording or self.summary or self.action_items)


class NotetakerEvent(BaseModel):
    """Vendor lifecycle event normalized into one flat shape.

    Every field other than ``type`` is optional; the reducer decides what a
    missing field means for each event family.
    """

    type: str
    notetaker_id: Optional[str] = None
    grant_id: Optional[str] = None
    meeting_state: Optional[str] = None
    # Media processing state ("processing", "available", "error", "deleted").
    state: Optional[str] = None
    status: Optional[str] = None
    media: MediaRefs = MediaRefs()
    raw: Dict[str, Any] = {}


def _first_str(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _media_url(value: Any) -> Optional[str]:
    # Media entries are either bare URLs or objects carrying a "url" key.
    if isinstance(value, str) and value:
        return value
    if isinstance(value, Mapping):
        return _first_str(value.get("url"))
    return None


def normalize_event(payload: Mapping[str, Any]) -> NotetakerEvent:
    """Adapt a raw webhook body ``{"type": ..., "data": {...}}``.

    The vendor nests the notetaker under ``data.object`` for current triggers
    but older deliveries put the same fields flat under ``data``, sometimes
    under different names (``notetaker_id`` vs ``id``, ``grant.id`` vs
    ``grant_id``, ``state`` vs ``meeting_state``).
    """

    event_type = str(payload.get("type") or "")
    data = payload.get("data")
    if not isinstance(data, Mapping):
        data = {}
    obj = data.get("object")
    if not isinstance(obj, Mapping):
        obj = data

    grant = data.get("grant")
    grant_ref = grant.get("id") if isinstance(grant, Mapping) else None

    state = _first_str(obj.get("state"), data.get("state"))
    meeting_state = _first_str(obj.get("meeting_state"), data.get("meeting_state"))
    if meeting_state is None and event_type == EventType.MEETING_STATE:
        meeting_state = state

    raw_media = obj.get("media") or data.get("media")
    media = MediaRefs()
    if isinstance(raw_media, Mapping):
        media = MediaRefs(
            transcript=_media_url(raw_media.get("transcript")),
            recording=_media_url(raw_media.get("recording")),
            summary=_media_url(raw_media.get("summary")),
            action_items=_media_url(raw_media.get("action_items")),
        )

    return NotetakerEvent(
        type=event_type,
        notetaker_id=_first_str(obj.get("id"), data.get("notetaker_id"), data.get("id")),
        grant_id=_first_str(obj.get("grant_id"), data.get("grant_id"), grant_ref),
        meeting_state=meeting_state,
        state=state,
        status=_first_str(obj.get("status"), data.get("status")),
        media=media,
        raw=dict(payload),
    )
