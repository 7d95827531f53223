"""
Unit tests for the built-in capability handlers.

Handlers are called directly with a ``CapabilityContext`` over the seeded
in-memory collaborators; generation-dependent paths use small fakes.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from threadpilot_ai.capability_core.capabilities.base import CapabilityContext
from threadpilot_ai.capability_core.capabilities.builtin import (
    MAX_TRANSCRIPT_CHARS,
    CategorizeMessageCapability,
    CheckCalendarCapability,
    DetectSchedulingNeedCapability,
    ExtractActionItemsCapability,
    SearchMessagesCapability,
    SuggestMeetingTimesCapability,
    SummarizeThreadCapability,
    TrackDecisionsCapability,
    build_transcript,
)
from threadpilot_ai.capability_core.collaborators.errors import ResourceNotFoundError
from threadpilot_ai.capability_core.collaborators.memory import ExtractiveGenerationService
from threadpilot_ai.capability_core.collaborators.models import (
    Classification,
    ExtractedItem,
    GeneratedSummary,
    Message,
    NonMeetingWindow,
)
from threadpilot_ai.capability_core.runtime.deadline import Deadline
from threadpilot_ai.capability_core.schemas.capabilities import (
    CategorizationMethod,
    CategorizeMessageParams,
    CheckCalendarParams,
    DetectSchedulingNeedParams,
    ExtractActionItemsParams,
    MessageCategoryType,
    SchedulingUrgency,
    SearchMessagesParams,
    SuggestMeetingTimesParams,
    SummarizeThreadParams,
    TrackDecisionsParams,
)


def ctx_for(deps, caller_id="alice", deadline=None):
    return CapabilityContext(caller_id=caller_id, execution_id="exec-1", deps=deps, deadline=deadline)


class _ScriptedGeneration(ExtractiveGenerationService):
    """Extractive service with overridable answers."""

    def __init__(self, *, summary=None, items=None, classification=None, classify_delay=0.0):
        super().__init__()
        self._summary = summary
        self._items = items
        self._classification = classification
        self._classify_delay = classify_delay

    async def summarize(self, text):
        if self._summary is not None:
            return self._summary
        return await super().summarize(text)

    async def extract(self, text, kind):
        if self._items is not None:
            return self._items
        return await super().extract(text, kind)

    async def classify(self, text):
        if self._classify_delay:
            await asyncio.sleep(self._classify_delay)
        if self._classification is not None:
            return self._classification
        return await super().classify(text)


class TestSearchMessages:
    async def test_scoped_search_ranks_by_relevance(self, collaborators):
        params = SearchMessagesParams(query="launch deadline friday", chat_id="t1")

        matches = await SearchMessagesCapability().execute(ctx_for(collaborators), params=params)

        assert matches[0].message_id == "m1"
        assert all(m.thread_id == "t1" for m in matches)
        scores = [m.relevance_score for m in matches]
        assert scores == sorted(scores, reverse=True)

    async def test_unscoped_search_is_limited_to_callers_threads(self, collaborators):
        params = SearchMessagesParams(query="lunch menu week")

        assert await SearchMessagesCapability().execute(ctx_for(collaborators, "alice"), params=params) == []
        found = await SearchMessagesCapability().execute(ctx_for(collaborators, "dave"), params=params)
        assert [m.message_id for m in found] == ["m6"]

    async def test_limit_is_applied(self, collaborators):
        params = SearchMessagesParams(query="the plan release launch beta", chat_id="t1", limit=1)

        matches = await SearchMessagesCapability().execute(ctx_for(collaborators), params=params)

        assert len(matches) == 1


class TestSummarizeThread:
    async def test_summary_fields(self, collaborators):
        summary = await SummarizeThreadCapability().execute(
            ctx_for(collaborators), params=SummarizeThreadParams(thread_id="t1")
        )

        assert summary.participants == ["alice", "bob"]
        assert summary.message_count == 4
        assert summary.decision_count == 1
        assert 0 < len(summary.key_points) <= 5
        assert summary.truncated is False

    async def test_summary_is_cut_to_max_length(self, collaborators):
        deps = replace(collaborators, generation=_ScriptedGeneration(summary=GeneratedSummary(summary="x" * 400)))

        summary = await SummarizeThreadCapability().execute(
            ctx_for(deps), params=SummarizeThreadParams(thread_id="t1", max_length=50)
        )

        assert len(summary.summary) == 50
        assert summary.summary.endswith("...")

    async def test_empty_thread(self, collaborators):
        summary = await SummarizeThreadCapability().execute(
            ctx_for(collaborators), params=SummarizeThreadParams(thread_id="t-empty")
        )

        assert summary.message_count == 0
        assert summary.key_points == []

    async def test_missing_thread_raises_not_found(self, collaborators):
        with pytest.raises(ResourceNotFoundError):
            await SummarizeThreadCapability().execute(
                ctx_for(collaborators), params=SummarizeThreadParams(thread_id="nope")
            )

    async def test_long_thread_is_sampled(self, collaborators, message_store):
        base = datetime(2025, 3, 4, tzinfo=timezone.utc)
        for i in range(200):
            message_store.add_message(
                Message(id=f"l{i}", thread_id="long", sender_id="alice", text="word " * 20, timestamp=base + timedelta(minutes=i))
            )

        summary = await SummarizeThreadCapability().execute(
            ctx_for(collaborators), params=SummarizeThreadParams(thread_id="long")
        )

        assert summary.truncated is True
        assert summary.message_count == 200


class TestBuildTranscript:
    def test_short_thread_is_verbatim(self):
        now = datetime(2025, 3, 3, tzinfo=timezone.utc)
        messages = [Message(id="a", thread_id="t", sender_id="u", text="hello there", timestamp=now)]

        text, sampled = build_transcript(messages)

        assert text == "[a] u: hello there"
        assert sampled is False

    def test_long_thread_keeps_head_and_tail(self):
        now = datetime(2025, 3, 3, tzinfo=timezone.utc)
        messages = [
            Message(id=f"x{i}", thread_id="t", sender_id="u", text="y" * 100, timestamp=now + timedelta(minutes=i))
            for i in range(100)
        ]

        text, sampled = build_transcript(messages)

        assert sampled is True
        assert len(text) <= MAX_TRANSCRIPT_CHARS
        assert text.startswith("[x0]")
        assert text.rstrip().splitlines()[-1].startswith("[x99]")
        assert "messages omitted" in text


class TestExtraction:
    async def test_action_items_point_to_source_messages(self, collaborators):
        items = await ExtractActionItemsCapability().execute(
            ctx_for(collaborators), params=ExtractActionItemsParams(thread_id="t1")
        )

        assert [i.source_message_id for i in items] == ["m2"]
        assert items[0].assignee == "bob"

    async def test_items_with_unknown_source_are_dropped(self, collaborators):
        generation = _ScriptedGeneration(
            items=[
                ExtractedItem(text="real", source_message_id="m1"),
                ExtractedItem(text="made up", source_message_id="m999"),
                ExtractedItem(text="no source"),
            ]
        )
        deps = replace(collaborators, generation=generation)

        items = await ExtractActionItemsCapability().execute(ctx_for(deps), params=ExtractActionItemsParams(thread_id="t1"))

        assert [i.task for i in items] == ["real"]

    async def test_low_confidence_decisions_are_filtered(self, collaborators):
        generation = _ScriptedGeneration(
            items=[
                ExtractedItem(text="ship beta", source_message_id="m3", confidence=0.9),
                ExtractedItem(text="maybe rename", source_message_id="m2", confidence=0.4),
            ]
        )
        deps = replace(collaborators, generation=generation)

        decisions = await TrackDecisionsCapability().execute(ctx_for(deps), params=TrackDecisionsParams(thread_id="t1"))

        assert [d.decision_text for d in decisions] == ["ship beta"]
        assert decisions[0].participants == ["alice"]
        assert decisions[0].timestamp == datetime(2025, 3, 3, 9, 10, tzinfo=timezone.utc)

    async def test_decisions_from_extractive_service(self, collaborators):
        decisions = await TrackDecisionsCapability().execute(
            ctx_for(collaborators), params=TrackDecisionsParams(thread_id="t1")
        )

        assert [d.source_message_id for d in decisions] == ["m3"]
        assert all(d.confidence >= 0.6 for d in decisions)


class TestCategorizeMessage:
    async def test_model_answer_is_used(self, collaborators):
        classification = Classification(category=MessageCategoryType.can_wait, confidence=0.9, reasoning="question")
        deps = replace(collaborators, generation=_ScriptedGeneration(classification=classification))

        result = await CategorizeMessageCapability().execute(ctx_for(deps), params=CategorizeMessageParams(message_id="m1"))

        assert result.method == CategorizationMethod.model
        assert result.category == MessageCategoryType.can_wait

    async def test_unavailable_generation_falls_back_to_keywords(self, collaborators):
        result = await CategorizeMessageCapability().execute(
            ctx_for(collaborators), params=CategorizeMessageParams(message_id="m1")
        )

        assert result.method == CategorizationMethod.heuristic
        assert result.category == MessageCategoryType.urgent

    async def test_low_model_confidence_falls_back(self, collaborators):
        classification = Classification(category=MessageCategoryType.can_wait, confidence=0.2)
        deps = replace(collaborators, generation=_ScriptedGeneration(classification=classification))

        result = await CategorizeMessageCapability().execute(ctx_for(deps), params=CategorizeMessageParams(message_id="m5"))

        assert result.method == CategorizationMethod.heuristic
        assert result.category == MessageCategoryType.ai_handled

    async def test_slow_model_falls_back_before_the_deadline(self, collaborators):
        classification = Classification(category=MessageCategoryType.can_wait, confidence=0.9)
        deps = replace(collaborators, generation=_ScriptedGeneration(classification=classification, classify_delay=5.0))
        ctx = CapabilityContext(
            caller_id="alice", execution_id="e", deps=deps, deadline=Deadline(0.5), fallback_reserve=0.25
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        result = await CategorizeMessageCapability().execute(ctx, params=CategorizeMessageParams(message_id="m1"))

        assert result.method == CategorizationMethod.heuristic
        assert loop.time() - started < 0.5


class TestDetectSchedulingNeed:
    async def test_scheduling_need_found(self, collaborators):
        need = await DetectSchedulingNeedCapability().execute(
            ctx_for(collaborators), params=DetectSchedulingNeedParams(thread_id="t1")
        )

        assert need is not None
        assert need.source_message_id == "m4"
        assert need.suggested_duration == 45
        assert set(need.participants) == {"alice", "bob"}

    async def test_no_intent_returns_none_without_calling_generation(self, collaborators):
        class _Exploding(ExtractiveGenerationService):
            async def extract(self, text, kind):
                raise AssertionError("generation must not be called")

        deps = replace(collaborators, generation=_Exploding())

        need = await DetectSchedulingNeedCapability().execute(ctx_for(deps), params=DetectSchedulingNeedParams(thread_id="t2"))

        assert need is None

    async def test_empty_thread_returns_none(self, collaborators):
        need = await DetectSchedulingNeedCapability().execute(
            ctx_for(collaborators), params=DetectSchedulingNeedParams(thread_id="t-empty")
        )

        assert need is None

    async def test_duration_is_clamped_and_bad_source_dropped(self, collaborators):
        generation = _ScriptedGeneration(
            items=[ExtractedItem(source_message_id="m999", duration_minutes=600, urgency=SchedulingUrgency.high)]
        )
        deps = replace(collaborators, generation=generation)

        need = await DetectSchedulingNeedCapability().execute(ctx_for(deps), params=DetectSchedulingNeedParams(thread_id="t1"))

        assert need.suggested_duration == 180
        assert need.urgency == SchedulingUrgency.high
        assert need.source_message_id is None


class TestCalendarCapabilities:
    async def test_check_calendar(self, collaborators, calendar):
        calendar.add_busy("alice", datetime(2025, 3, 3, 10, tzinfo=timezone.utc), datetime(2025, 3, 3, 11, tzinfo=timezone.utc))
        params = CheckCalendarParams(user_id="alice", start_date="2025-03-03T09:00:00Z", end_date="2025-03-03T17:00:00Z")

        view = await CheckCalendarCapability().execute(ctx_for(collaborators), params=params)

        assert view.user_id == "alice"
        assert len(view.busy) == 1
        assert len(view.free) == 2

    async def test_suggest_meeting_times_defaults_to_next_week(self, collaborators, calendar):
        calendar.add_non_meeting_window("bob", NonMeetingWindow(start="00:00", end="12:00"))
        handler = SuggestMeetingTimesCapability(now=lambda: datetime(2025, 3, 3, 8, 5, tzinfo=timezone.utc))

        slots = await handler.execute(
            ctx_for(collaborators), params=SuggestMeetingTimesParams(participants=["alice", "bob"], duration=30)
        )

        assert 0 < len(slots) <= 5
        assert all(s.start_time.hour >= 12 for s in slots)
        assert all(s.start_time < datetime(2025, 3, 10, 8, 30, tzinfo=timezone.utc) for s in slots)

    async def test_suggest_meeting_times_with_no_room(self, collaborators, calendar):
        calendar.add_busy("alice", datetime(2025, 3, 3, tzinfo=timezone.utc), datetime(2025, 3, 4, tzinfo=timezone.utc))
        params = SuggestMeetingTimesParams(
            participants=["alice", "bob"],
            duration=60,
            start_date="2025-03-03T00:00:00Z",
            end_date="2025-03-04T00:00:00Z",
        )

        assert await SuggestMeetingTimesCapability().execute(ctx_for(collaborators), params=params) == []
