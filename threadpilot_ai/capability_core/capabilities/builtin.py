from __future__ import annotations

"""The eight built-in capability handlers.

Every handler is a frozen dataclass exposing ``name`` and ``execute``. They
only read from collaborators; none of them mutates external state, so a
client retry is always safe.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..collaborators.errors import CollaboratorError
from ..collaborators.models import ExtractedItem, ExtractionKind, Message, Thread, render_message_line
from ..schemas.capabilities import (
    ActionItem,
    CalendarAvailability,
    CategorizationMethod,
    CategorizeMessageParams,
    CheckCalendarParams,
    DecisionRecord,
    DetectSchedulingNeedParams,
    ExtractActionItemsParams,
    MeetingSlot,
    MessageCategory,
    SchedulingNeed,
    SchedulingUrgency,
    SearchMatch,
    SearchMessagesParams,
    SuggestMeetingTimesParams,
    SummarizeThreadParams,
    ThreadSummary,
    TrackDecisionsParams,
    parse_iso,
)
from ..schemas.domain import CapabilityName
from .base import Capability, CapabilityContext
from .heuristics import categorize_by_keywords, clamp_duration, has_scheduling_intent
from .scheduling import availability, rank_slots, round_up_to_step, to_utc

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 4000
MAX_LINE_CHARS = 500
HEAD_MESSAGES = 5
MAX_KEY_POINTS = 5
RECENT_MESSAGES_FOR_SCHEDULING = 50
MIN_DECISION_CONFIDENCE = 0.6
MIN_MODEL_CONFIDENCE = 0.6
DEFAULT_SUGGESTION_WINDOW = timedelta(days=7)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_transcript(messages: Sequence[Message], *, budget: int = MAX_TRANSCRIPT_CHARS) -> Tuple[str, bool]:
    """
    Render messages as transcript lines, sampling long threads.

    When the full transcript exceeds ``budget`` characters, the first
    ``HEAD_MESSAGES`` messages are kept (they usually state the topic) and the
    rest of the budget is filled with the most recent messages, separated by
    an omission marker.

    Returns:
        ``(transcript, sampled)``
    """
    lines = [render_message_line(m)[:MAX_LINE_CHARS] for m in messages]
    if sum(len(line) + 1 for line in lines) <= budget:
        return "\n".join(lines), False

    head: List[str] = []
    used = 0
    for line in lines[:HEAD_MESSAGES]:
        if used + len(line) + 1 > budget // 2:
            break
        head.append(line)
        used += len(line) + 1

    tail: List[str] = []
    for line in reversed(lines[len(head) :]):
        if used + len(line) + 1 > budget - 40:
            break
        tail.append(line)
        used += len(line) + 1
    tail.reverse()

    omitted = len(lines) - len(head) - len(tail)
    return "\n".join(head + [f"[...] {omitted} messages omitted"] + tail), True


def _shorten(text: str, max_length: int) -> str:
    text = text.strip()
    if len(text) <= max_length:
        return text
    return text[: max_length - 3].rstrip() + "..."


def _sourced(items: Sequence[ExtractedItem], thread: Thread) -> List[Tuple[ExtractedItem, Message]]:
    """Keep only items pointing at a message of this thread."""
    by_id: Dict[str, Message] = {m.id: m for m in thread.messages}
    kept = []
    for item in items:
        source = by_id.get(item.source_message_id or "")
        if source is None:
            logger.debug(f"Dropping extracted item without a valid source message in thread {thread.id}")
            continue
        kept.append((item, source))
    return kept


@dataclass(frozen=True)
class SearchMessagesCapability(Capability):
    """
    Semantic search over the caller's messages.

    With ``chatId`` the retrieval collaborator is restricted to that thread
    (membership has already been checked); without it, to the threads the
    caller belongs to. An empty result list is a success.
    """

    name: CapabilityName = CapabilityName.search_messages

    async def execute(self, ctx: CapabilityContext, *, params: SearchMessagesParams) -> List[SearchMatch]:
        filters: Dict[str, Any] = {"threadId": params.chat_id} if params.chat_id else {"memberId": ctx.caller_id}
        matches = await ctx.deps.retrieval.query_similar(params.query, filters, params.limit)
        ranked = sorted(matches, key=lambda m: m.relevance_score, reverse=True)
        return ranked[: params.limit]


@dataclass(frozen=True)
class SummarizeThreadCapability(Capability):
    """
    Summarize a thread through the generation collaborator.

    Long threads are sampled before delegation (``truncated`` is then set).
    The summary is cut to ``maxLength`` characters with a trailing ellipsis.
    """

    name: CapabilityName = CapabilityName.summarize_thread

    async def execute(self, ctx: CapabilityContext, *, params: SummarizeThreadParams) -> ThreadSummary:
        thread = await ctx.deps.message_store.fetch_thread(params.thread_id)
        if not thread.messages:
            return ThreadSummary(summary="This thread has no messages yet.")

        transcript, sampled = build_transcript(thread.messages)
        generated = await ctx.deps.generation.summarize(transcript)
        return ThreadSummary(
            summary=_shorten(generated.summary, params.max_length),
            key_points=[p for p in generated.key_points if p.strip()][:MAX_KEY_POINTS],
            participants=thread.participants,
            decision_count=max(0, generated.decision_count),
            message_count=len(thread.messages),
            truncated=sampled,
        )


@dataclass(frozen=True)
class ExtractActionItemsCapability(Capability):
    """Extract tasks from a thread; each item points back to its source message."""

    name: CapabilityName = CapabilityName.extract_action_items

    async def execute(self, ctx: CapabilityContext, *, params: ExtractActionItemsParams) -> List[ActionItem]:
        thread = await ctx.deps.message_store.fetch_thread(params.thread_id)
        if not thread.messages:
            return []
        transcript, _ = build_transcript(thread.messages)
        items = await ctx.deps.generation.extract(transcript, ExtractionKind.action_items)
        return [
            ActionItem(
                id=f"action_{source.id}_{i}",
                task=item.text.strip(),
                deadline=item.deadline,
                assignee=item.assignee,
                source_message_id=source.id,
            )
            for i, (item, source) in enumerate(_sourced(items, thread))
            if item.text.strip()
        ]


@dataclass(frozen=True)
class TrackDecisionsCapability(Capability):
    """Extract decisions from a thread, keeping only confident ones."""

    name: CapabilityName = CapabilityName.track_decisions

    async def execute(self, ctx: CapabilityContext, *, params: TrackDecisionsParams) -> List[DecisionRecord]:
        thread = await ctx.deps.message_store.fetch_thread(params.thread_id)
        if not thread.messages:
            return []
        transcript, _ = build_transcript(thread.messages)
        items = await ctx.deps.generation.extract(transcript, ExtractionKind.decisions)
        return [
            DecisionRecord(
                id=f"decision_{source.id}_{i}",
                decision_text=item.text.strip(),
                participants=item.participants or [source.sender_id],
                timestamp=source.timestamp,
                confidence=min(1.0, max(0.0, item.confidence)),
                source_message_id=source.id,
            )
            for i, (item, source) in enumerate(_sourced(items, thread))
            if item.text.strip() and item.confidence >= MIN_DECISION_CONFIDENCE
        ]


@dataclass(frozen=True)
class CategorizeMessageCapability(Capability):
    """
    Classify one message as ``urgent``, ``canWait`` or ``aiHandled``.

    The generation collaborator gets the deadline minus the fallback reserve.
    If it fails, times out, or answers with low confidence, the keyword
    heuristic decides instead; that is still a successful result
    (``method = heuristic``).
    """

    name: CapabilityName = CapabilityName.categorize_message

    async def execute(self, ctx: CapabilityContext, *, params: CategorizeMessageParams) -> MessageCategory:
        message = await ctx.deps.message_store.fetch_message(params.message_id)
        budget = ctx.time_left(keep_reserve=True)
        try:
            if budget is not None and budget <= 0:
                raise asyncio.TimeoutError()
            classification = await asyncio.wait_for(ctx.deps.generation.classify(message.text), timeout=budget)
        except (CollaboratorError, asyncio.TimeoutError) as e:
            logger.info(
                f"Generation unavailable for categorizeMessage ({type(e).__name__}); "
                f"using keyword fallback: execution_id={ctx.execution_id}"
            )
            return categorize_by_keywords(message.text)

        if classification.confidence < MIN_MODEL_CONFIDENCE:
            logger.debug(f"Model confidence {classification.confidence:.2f} too low; using keyword fallback")
            return categorize_by_keywords(message.text)

        return MessageCategory(
            category=classification.category,
            confidence=classification.confidence,
            reasoning=classification.reasoning or "Model classification",
            signals=list(classification.signals),
            method=CategorizationMethod.model,
        )


@dataclass(frozen=True)
class DetectSchedulingNeedCapability(Capability):
    """
    Look for scheduling intent in the most recent messages of a thread.

    Returns ``None`` when the thread is empty, when no scheduling vocabulary
    appears (the generation collaborator is then not called at all), or when
    the collaborator finds no intent.
    """

    name: CapabilityName = CapabilityName.detect_scheduling_need

    async def execute(self, ctx: CapabilityContext, *, params: DetectSchedulingNeedParams) -> Optional[SchedulingNeed]:
        thread = await ctx.deps.message_store.fetch_thread(params.thread_id)
        recent = thread.messages[-RECENT_MESSAGES_FOR_SCHEDULING:]
        if not recent or not any(has_scheduling_intent(m.text) for m in recent):
            return None

        transcript, _ = build_transcript(recent)
        items = await ctx.deps.generation.extract(transcript, ExtractionKind.scheduling)
        if not items:
            return None
        item = items[0]
        recent_ids = {m.id for m in recent}
        return SchedulingNeed(
            participants=Thread(id=thread.id, messages=recent).participants,
            suggested_duration=clamp_duration(item.duration_minutes),
            urgency=item.urgency or SchedulingUrgency.medium,
            source_message_id=item.source_message_id if item.source_message_id in recent_ids else None,
        )


@dataclass(frozen=True)
class CheckCalendarCapability(Capability):
    """Free/busy view of one user's calendar for a date range."""

    name: CapabilityName = CapabilityName.check_calendar

    async def execute(self, ctx: CapabilityContext, *, params: CheckCalendarParams) -> CalendarAvailability:
        start = to_utc(parse_iso(params.start_date))
        end = to_utc(parse_iso(params.end_date))
        return await availability(ctx.deps.calendar, params.user_id, start, end)


@dataclass(frozen=True)
class SuggestMeetingTimesCapability(Capability):
    """
    Suggest up to five meeting slots that every participant can attend.

    Free/busy data and non-meeting hours are fetched for all participants
    concurrently. The search window defaults to the next seven days.
    """

    name: CapabilityName = CapabilityName.suggest_meeting_times
    now: Callable[[], datetime] = _utc_now

    async def execute(self, ctx: CapabilityContext, *, params: SuggestMeetingTimesParams) -> List[MeetingSlot]:
        if params.start_date is not None:
            start = to_utc(parse_iso(params.start_date))
        else:
            start = round_up_to_step(to_utc(self.now()))
        end = to_utc(parse_iso(params.end_date)) if params.end_date is not None else start + DEFAULT_SUGGESTION_WINDOW
        if end <= start:
            return []

        calendar = ctx.deps.calendar
        views = await asyncio.gather(*(availability(calendar, p, start, end) for p in params.participants))
        windows = await asyncio.gather(*(calendar.non_meeting_hours(p) for p in params.participants))

        return rank_slots(
            participants=params.participants,
            duration_minutes=params.duration,
            window_start=start,
            window_end=end,
            busy_by_user={v.user_id: [(i.start, i.end) for i in v.busy] for v in views},
            non_meeting_by_user=dict(zip(params.participants, windows)),
            preferred=params.preferred_time_ranges,
        )


def builtin_capabilities() -> List[Capability]:
    return [
        SearchMessagesCapability(),
        SummarizeThreadCapability(),
        ExtractActionItemsCapability(),
        TrackDecisionsCapability(),
        CategorizeMessageCapability(),
        DetectSchedulingNeedCapability(),
        CheckCalendarCapability(),
        SuggestMeetingTimesCapability(),
    ]
