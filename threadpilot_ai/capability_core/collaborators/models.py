"""Data shapes exchanged with the external collaborators.

These are the request/response models of the message store, the generation
service and the calendar source as seen by the handlers. Retrieval answers
are returned directly as ``SearchMatch`` and free/busy answers as
``TimeInterval`` (see ``schemas.capabilities``).
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from ..schemas.base import BaseSchema
from ..schemas.capabilities import DAILY_TIME_PATTERN, MessageCategoryType, SchedulingUrgency, minutes_of_day


class CollaboratorSchema(BaseSchema):
    """Response models of external services tolerate fields they do not know."""

    model_config = ConfigDict(extra="ignore")


class Message(CollaboratorSchema):
    id: str
    thread_id: str
    sender_id: str
    text: str = ""
    timestamp: datetime


class Thread(CollaboratorSchema):
    id: str
    messages: List[Message] = Field(default_factory=list)

    @property
    def participants(self) -> List[str]:
        """Distinct senders in first-seen order."""
        seen: List[str] = []
        for m in self.messages:
            if m.sender_id not in seen:
                seen.append(m.sender_id)
        return seen


class ExtractionKind(str, Enum):
    action_items = "actionItems"
    decisions = "decisions"
    scheduling = "scheduling"


class GeneratedSummary(CollaboratorSchema):
    summary: str
    key_points: List[str] = Field(default_factory=list)
    decision_count: int = 0


class ExtractedItem(CollaboratorSchema):
    """One structured record returned by ``GenerationService.extract``.

    Which optional fields are populated depends on the ``ExtractionKind``:
    tasks carry ``assignee``/``deadline``, decisions carry ``participants``
    and ``confidence``, scheduling intents carry ``duration_minutes`` and
    ``urgency``.
    """

    text: str = ""
    source_message_id: Optional[str] = None
    assignee: Optional[str] = None
    deadline: Optional[datetime] = None
    participants: List[str] = Field(default_factory=list)
    confidence: float = 1.0
    duration_minutes: Optional[int] = None
    urgency: Optional[SchedulingUrgency] = None


class Classification(CollaboratorSchema):
    category: MessageCategoryType
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    signals: List[str] = Field(default_factory=list)


class NonMeetingWindow(CollaboratorSchema):
    """A recurring daily window in which a user does not take meetings (UTC).

    ``days_of_week`` uses 0 = Monday ... 6 = Sunday, like ``datetime.weekday()``.
    """

    start: str = Field(pattern=DAILY_TIME_PATTERN)
    end: str = Field(pattern=DAILY_TIME_PATTERN)
    days_of_week: List[int] = Field(default_factory=lambda: list(range(7)))

    @model_validator(mode="after")
    def _check_window(self) -> "NonMeetingWindow":
        if minutes_of_day(self.end) <= minutes_of_day(self.start):
            raise ValueError("end must be after start")
        if any(d < 0 or d > 6 for d in self.days_of_week):
            raise ValueError("days_of_week entries must be within 0..6")
        return self

    @property
    def start_minute(self) -> int:
        return minutes_of_day(self.start)

    @property
    def end_minute(self) -> int:
        return minutes_of_day(self.end)


# Transcript lines handed to the generation service: "[<message id>] <sender id>: <text>"
TRANSCRIPT_LINE_RE = re.compile(r"^\[(?P<message_id>[^\]]+)\]\s+(?P<sender_id>[^:]+):\s?(?P<text>.*)$")


def render_message_line(message: Message) -> str:
    text = " ".join(message.text.split())
    return f"[{message.id}] {message.sender_id}: {text}"
