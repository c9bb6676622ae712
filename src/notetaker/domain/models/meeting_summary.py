from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SummaryTopic(BaseModel):
    topic: str
    summary: str = ""


class SummaryDecision(BaseModel):
    decision: str
    speaker: Optional[str] = None
    context: Optional[str] = None


class SummaryActionItem(BaseModel):
    item: str
    assignee: str = "Unassigned"
    due_date: Optional[str] = None


class MeetingSummary(BaseModel):
    """Derived notes for a recorded meeting.

    The basic generator fills only the core fields (summary, key points,
    participants, duration, word count); the LLM generator also fills topics,
    decisions, action items, questions and next steps.
    """

    summary: str
    key_points: List[str] = []
    participants: List[str] = []
    duration: int = 0  # seconds
    word_count: int = 0

    topics: List[SummaryTopic] = []
    decisions: List[SummaryDecision] = []
    action_items: List[SummaryActionItem] = []
    questions: List[str] = []
    next_steps: List[str] = []

    generated_at: Optional[datetime] = None
    transcript_type: Optional[str] = None
    generated_by: Optional[str] = None  # "basic" or "openai"
    model: Optional[str] = None

    # Links to the vendor's own summary/action-item artifacts, when delivered.
    vendor_summary_url: Optional[str] = None
    vendor_action_items_url: Optional[str] = None
