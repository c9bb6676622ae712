from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from src.notetaker.config import settings
from src.notetaker.domain.models.meeting_summary import (
    MeetingSummary,
    SummaryActionItem,
    SummaryDecision,
    SummaryTopic,
)
from src.notetaker.domain.models.transcript import Transcript

logger = logging.getLogger("notetaker.summary")

SUMMARY_PREVIEW_CHARS = 200
MAX_KEY_POINTS = 5
KEY_POINT_TRIGGERS = ("?", "important", "action", "decision", "next")
NO_KEY_POINTS = "No specific key points identified."

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class SummaryBackend(Protocol):
    """Turns a non-empty transcript into a meeting summary.

    Backends may raise; the :class:`SummaryGenerator` owns the fallback.
    """

    def summarize(self, transcript: Transcript) -> MeetingSummary:  # pragma: no cover - interface
        raise NotImplementedError


def empty_summary() -> MeetingSummary:
    return MeetingSummary(summary="No transcript available.", key_points=[], participants=[], duration=0)


class BasicSummaryBackend:
    """Extractive summary built from the transcript text alone.

    The summary is the opening of the conversation; key points are sentences
    that look like questions, decisions or follow-ups.
    """

    def summarize(self, transcript: Transcript) -> MeetingSummary:
        full_text = transcript.full_text
        if len(full_text) > SUMMARY_PREVIEW_CHARS:
            summary = full_text[:SUMMARY_PREVIEW_CHARS] + "..."
        else:
            summary = full_text

        key_points: List[str] = []
        for match in _SENTENCE_RE.finditer(full_text):
            sentence = match.group(0).strip()
            if len(sentence) <= 20:
                continue
            lower = sentence.lower()
            if any(trigger in lower for trigger in KEY_POINT_TRIGGERS):
                key_points.append(sentence)
            if len(key_points) == MAX_KEY_POINTS:
                break

        return MeetingSummary(
            summary=summary,
            key_points=key_points or [NO_KEY_POINTS],
            participants=transcript.participants,
            duration=transcript.duration_seconds,
            word_count=transcript.word_count,
            generated_at=datetime.now(timezone.utc),
            transcript_type=transcript.type or "unknown",
            generated_by="basic",
        )


def format_transcript_for_llm(transcript: Transcript) -> str:
    lines = []
    for segment in transcript.segments:
        speaker = segment.speaker or "Unknown Speaker"
        timestamp = ""
        if segment.start:
            seconds = int(segment.start // 1000)
            timestamp = f"{seconds // 60}:{seconds % 60:02d}"
        lines.append(f"[{timestamp}] {speaker}: {segment.text}")
    return "\n\n".join(lines)


def _build_prompt(transcript: Transcript) -> str:
    return (
        "You are an expert meeting note-taker. Analyze the following meeting transcript "
        "and generate comprehensive, structured meeting notes.\n\n"
        f"TRANSCRIPT:\n{format_transcript_for_llm(transcript)}\n\n"
        "Respond ONLY with a JSON object using these keys:\n"
        '- "summary": a concise 2-3 sentence executive summary\n'
        '- "keyPoints": list of important points\n'
        '- "topics": list of {"topic", "summary"}\n'
        '- "decisions": list of {"decision", "speaker", "context"}\n'
        '- "actionItems": list of {"item", "assignee", "dueDate"} (assignee "Unassigned" if unknown)\n'
        '- "questions": list of questions raised but not answered\n'
        '- "nextSteps": list of next steps\n'
        "Extract implicit action items and decisions too. Use empty lists when "
        "information is not available. Do not include markdown or code blocks."
    )


def parse_llm_json(raw_text: str) -> Dict[str, Any]:
    """Parse the model's JSON reply, tolerating prose around the object."""

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(raw_text)
        if match is None:
            raise ValueError("LLM response did not contain a JSON object")
        data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("LLM response JSON is not an object")
    return data


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


class LLMSummaryBackend:
    """Summary backend that uses an LLM via the OpenAI Python client.

    This backend expects OPENAI_API_KEY to be set and uses the model name from
    LLM_MODEL. A pre-built client can be injected, which is how tests exercise
    response parsing without network access.
    """

    def __init__(self, model: str | None = None, client: Any | None = None) -> None:
        self._model = model or settings.llm_model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        api_key = settings.openai_api_key
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY must be set to use LLMSummaryBackend")

        from openai import OpenAI

        self._client = OpenAI(api_key=api_key, timeout=settings.media_timeout_seconds)
        return self._client

    def summarize(self, transcript: Transcript) -> MeetingSummary:
        client = self._get_client()
        response = client.responses.create(
            model=self._model,
            instructions=(
                "You are a professional meeting note-taker. You extract structured information "
                "from meeting transcripts and return it as valid JSON only."
            ),
            input=[{"role": "user", "content": _build_prompt(transcript)}],
            temperature=0.3,
        )

        raw_text: Optional[str] = None
        for output in response.output:
            for item in getattr(output, "content", None) or []:
                if getattr(item, "type", "") == "output_text" and getattr(item, "text", None):
                    raw_text = item.text
                    break
            if raw_text is not None:
                break
        if not raw_text:
            raise ValueError("LLM response contained no text output")

        data = parse_llm_json(raw_text)

        topics = [
            SummaryTopic(topic=str(t["topic"]), summary=str(t.get("summary") or ""))
            for t in data.get("topics") or []
            if isinstance(t, dict) and t.get("topic")
        ]
        decisions = [
            SummaryDecision(decision=str(d["decision"]), speaker=d.get("speaker"), context=d.get("context"))
            for d in data.get("decisions") or []
            if isinstance(d, dict) and d.get("decision")
        ]
        action_items = [
            SummaryActionItem(
                item=str(a["item"]),
                assignee=str(a.get("assignee") or "Unassigned"),
                due_date=a.get("dueDate"),
            )
            for a in data.get("actionItems") or []
            if isinstance(a, dict) and a.get("item")
        ]

        return MeetingSummary(
            summary=str(data.get("summary") or "No summary generated."),
            key_points=_str_list(data.get("keyPoints")),
            participants=transcript.participants,
            duration=transcript.duration_seconds,
            word_count=transcript.word_count,
            topics=topics,
            decisions=decisions,
            action_items=action_items,
            questions=_str_list(data.get("questions")),
            next_steps=_str_list(data.get("nextSteps")),
            generated_at=datetime.now(timezone.utc),
            transcript_type=transcript.type or "unknown",
            generated_by="openai",
            model=self._model,
        )


def get_summary_backend_from_env() -> SummaryBackend:
    """Select a summary backend based on SUMMARY_BACKEND.

    - "llm" → LLMSummaryBackend
    - "basic" → BasicSummaryBackend
    - "auto" (default) → LLMSummaryBackend when OPENAI_API_KEY is set,
      otherwise BasicSummaryBackend
    """

    backend_name = settings.summary_backend.lower()
    if backend_name == "llm":
        return LLMSummaryBackend()
    if backend_name == "auto" and settings.openai_api_key:
        return LLMSummaryBackend()
    return BasicSummaryBackend()
