"""Canonical parameter and result shapes for every capability.

This module is the single source of truth for the capability contract. The
server registry derives its per-field parameter specs from these models and the
client proxy serializes/deserializes with the very same classes, so both sides
of the wire cannot drift apart silently.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import Field, model_validator

from .base import BaseSchema

IDENTIFIER_PATTERN = r"^[a-zA-Z0-9_-]+$"
ISO_TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"
DAILY_TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"

MAX_CALENDAR_RANGE_DAYS = 366


def parse_iso(value: str) -> datetime:
    # Python < 3.11 does not accept a trailing "Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def minutes_of_day(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class MessageCategoryType(str, Enum):
    urgent = "urgent"
    can_wait = "canWait"
    ai_handled = "aiHandled"


class CategorizationMethod(str, Enum):
    model = "model"
    heuristic = "heuristic"


class SchedulingUrgency(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


# =====================================================================
# Parameters
# =====================================================================


class SearchMessagesParams(BaseSchema):
    query: str = Field(min_length=3, max_length=500, description="Natural language search query")
    chat_id: Optional[str] = Field(
        default=None, pattern=IDENTIFIER_PATTERN, description="Optional thread id that limits the search scope"
    )
    limit: int = Field(default=10, ge=1, le=50, description="Maximum number of results to return (1-50)")


class SummarizeThreadParams(BaseSchema):
    thread_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The id of the thread to summarize")
    max_length: int = Field(default=300, ge=50, le=500, description="Maximum summary length in characters (50-500)")


class ExtractActionItemsParams(BaseSchema):
    thread_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The id of the thread to extract action items from")


class TrackDecisionsParams(BaseSchema):
    thread_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The id of the thread to track decisions in")


class CategorizeMessageParams(BaseSchema):
    message_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The id of the message to categorize")


class DetectSchedulingNeedParams(BaseSchema):
    thread_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The id of the thread to scan for scheduling intent")


class CheckCalendarParams(BaseSchema):
    user_id: str = Field(pattern=IDENTIFIER_PATTERN, description="The user whose calendar is checked")
    start_date: str = Field(
        pattern=ISO_TIMESTAMP_PATTERN, description="Start in ISO 8601 format (e.g. 2024-01-01T00:00:00Z)"
    )
    end_date: str = Field(pattern=ISO_TIMESTAMP_PATTERN, description="End in ISO 8601 format (e.g. 2024-01-07T23:59:59Z)")

    @model_validator(mode="after")
    def _check_range(self) -> "CheckCalendarParams":
        _validate_range(self.start_date, self.end_date)
        return self


class PreferredTimeRange(BaseSchema):
    start: str = Field(pattern=DAILY_TIME_PATTERN, description="Start time in HH:MM format (e.g. 09:00)")
    end: str = Field(pattern=DAILY_TIME_PATTERN, description="End time in HH:MM format (e.g. 17:00)")

    @model_validator(mode="after")
    def _check_order(self) -> "PreferredTimeRange":
        if minutes_of_day(self.end) <= minutes_of_day(self.start):
            raise ValueError("end must be after start")
        return self

    @property
    def start_minute(self) -> int:
        return minutes_of_day(self.start)

    @property
    def end_minute(self) -> int:
        return minutes_of_day(self.end)


class SuggestMeetingTimesParams(BaseSchema):
    participants: List[Annotated[str, Field(pattern=IDENTIFIER_PATTERN)]] = Field(
        min_length=2,
        max_length=10,
        description="User ids who need to attend (2-10 participants)",
    )
    duration: int = Field(ge=15, le=180, description="Meeting duration in minutes (15-180)")
    preferred_time_ranges: Optional[List[PreferredTimeRange]] = Field(
        default=None, max_length=5, description="Preferred daily time ranges for the meeting (0-5 ranges)"
    )
    start_date: Optional[str] = Field(
        default=None, pattern=ISO_TIMESTAMP_PATTERN, description="Search window start (defaults to now)"
    )
    end_date: Optional[str] = Field(
        default=None, pattern=ISO_TIMESTAMP_PATTERN, description="Search window end (defaults to start + 7 days)"
    )

    @model_validator(mode="after")
    def _check_window(self) -> "SuggestMeetingTimesParams":
        if self.start_date is not None and self.end_date is not None:
            _validate_range(self.start_date, self.end_date)
        if len(set(self.participants)) != len(self.participants):
            raise ValueError("participants must be unique")
        return self


def _validate_range(start: str, end: str) -> None:
    try:
        start_at = parse_iso(start)
        end_at = parse_iso(end)
    except ValueError as e:
        raise ValueError(f"invalid date: {e}") from e
    if (start_at.tzinfo is None) != (end_at.tzinfo is None):
        raise ValueError("startDate and endDate must both carry a timezone or both omit it")
    if end_at <= start_at:
        raise ValueError("endDate must be after startDate")
    if (end_at - start_at).days > MAX_CALENDAR_RANGE_DAYS:
        raise ValueError(f"date range must not exceed {MAX_CALENDAR_RANGE_DAYS} days")


# =====================================================================
# Results
# =====================================================================


class SearchMatch(BaseSchema):
    message_id: str
    thread_id: str
    sender_id: str
    text: str
    timestamp: datetime
    relevance_score: float


class ThreadSummary(BaseSchema):
    summary: str
    key_points: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    decision_count: int = 0
    message_count: int = 0
    truncated: bool = False


class ActionItem(BaseSchema):
    id: str
    task: str
    deadline: Optional[datetime] = None
    assignee: Optional[str] = None
    source_message_id: str


class DecisionRecord(BaseSchema):
    id: str
    decision_text: str
    participants: List[str] = Field(default_factory=list)
    timestamp: datetime
    confidence: float
    source_message_id: str


class MessageCategory(BaseSchema):
    category: MessageCategoryType
    confidence: float
    reasoning: str
    signals: List[str] = Field(default_factory=list)
    method: CategorizationMethod = CategorizationMethod.model


class SchedulingNeed(BaseSchema):
    participants: List[str] = Field(default_factory=list)
    suggested_duration: int = 30
    urgency: SchedulingUrgency = SchedulingUrgency.medium
    source_message_id: Optional[str] = None


class TimeInterval(BaseSchema):
    start: datetime
    end: datetime


class CalendarAvailability(BaseSchema):
    user_id: str
    start_date: datetime
    end_date: datetime
    busy: List[TimeInterval] = Field(default_factory=list)
    free: List[TimeInterval] = Field(default_factory=list)


class MeetingSlot(BaseSchema):
    id: str
    start_time: datetime
    end_time: datetime
    participants: List[str] = Field(default_factory=list)
    score: float
    reasoning: str
