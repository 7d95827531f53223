from __future__ import annotations

"""In-memory collaborator implementations.

Used for local development (``THREADPILOT_AI_COLLABORATOR_MODE=memory``) and by
the test-suite. They honour the same contracts as the HTTP adapters: missing
threads/messages raise ``ResourceNotFoundError`` and nothing here is mutated
by the handlers.
"""

import asyncio
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..capabilities.heuristics import guess_duration, guess_urgency, has_scheduling_intent
from ..schemas.capabilities import SearchMatch, TimeInterval
from .errors import CollaboratorUnavailableError, ResourceNotFoundError
from .models import (
    TRANSCRIPT_LINE_RE,
    Classification,
    ExtractedItem,
    ExtractionKind,
    GeneratedSummary,
    Message,
    NonMeetingWindow,
    Thread,
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_ACTION_RE = re.compile(r"\b(todo|action item|i will|i'll|will you|need to|needs to|please|can you|could you)\b", re.I)
_DECISION_RE = re.compile(r"\b(decided|we decided|agreed|let's go with|we'll go with|final decision|approved)\b", re.I)
_ASSIGNEE_RE = re.compile(r"@([a-zA-Z0-9_-]+)")


def _tokens(text: str) -> Set[str]:
    return {t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 2}


class InMemoryMessageStore:
    """Thread/message store backed by dictionaries."""

    def __init__(self, messages: Iterable[Message] = (), *, latency: float = 0.0) -> None:
        self._threads: Dict[str, List[Message]] = {}
        self._messages: Dict[str, Message] = {}
        self._latency = latency
        for m in messages:
            self.add_message(m)

    def add_message(self, message: Message) -> None:
        self._messages[message.id] = message
        self._threads.setdefault(message.thread_id, []).append(message)

    def add_thread(self, thread_id: str) -> None:
        """Register an empty thread."""
        self._threads.setdefault(thread_id, [])

    def all_messages(self) -> List[Message]:
        return list(self._messages.values())

    async def fetch_thread(self, thread_id: str) -> Thread:
        if self._latency:
            await asyncio.sleep(self._latency)
        if thread_id not in self._threads:
            raise ResourceNotFoundError(collaborator="message_store", resource="thread", resource_id=thread_id)
        messages = sorted(self._threads[thread_id], key=lambda m: m.timestamp)
        return Thread(id=thread_id, messages=messages)

    async def fetch_message(self, message_id: str) -> Message:
        if self._latency:
            await asyncio.sleep(self._latency)
        try:
            return self._messages[message_id]
        except KeyError:
            raise ResourceNotFoundError(collaborator="message_store", resource="message", resource_id=message_id)


class InMemoryMembershipService:
    """Thread membership and (symmetric) scheduling relationships."""

    def __init__(
        self,
        members: Optional[Dict[str, Iterable[str]]] = None,
        relationships: Iterable[Tuple[str, str]] = (),
    ) -> None:
        self._members: Dict[str, Set[str]] = {k: set(v) for k, v in (members or {}).items()}
        self._relationships: Set[frozenset] = {frozenset(pair) for pair in relationships}

    def add_member(self, thread_id: str, user_id: str) -> None:
        self._members.setdefault(thread_id, set()).add(user_id)

    def add_relationship(self, user_a: str, user_b: str) -> None:
        self._relationships.add(frozenset((user_a, user_b)))

    def threads_of(self, user_id: str) -> Set[str]:
        return {t for t, members in self._members.items() if user_id in members}

    async def is_member(self, caller_id: str, thread_id: str) -> bool:
        return caller_id in self._members.get(thread_id, set())

    async def has_scheduling_relationship(self, caller_id: str, user_id: str) -> bool:
        return frozenset((caller_id, user_id)) in self._relationships


class InMemoryRetrievalService:
    """Token-overlap ranking over the in-memory message store.

    The relevance score is the share of query tokens found in a message.
    """

    def __init__(self, store: InMemoryMessageStore, membership: InMemoryMembershipService) -> None:
        self._store = store
        self._membership = membership

    async def query_similar(self, text: str, filters: Dict[str, Any], limit: int) -> List[SearchMatch]:
        query = _tokens(text)
        if not query:
            return []
        thread_id = filters.get("threadId")
        member_id = filters.get("memberId")
        allowed = self._membership.threads_of(member_id) if member_id else None

        matches: List[SearchMatch] = []
        for m in self._store.all_messages():
            if thread_id is not None and m.thread_id != thread_id:
                continue
            if allowed is not None and m.thread_id not in allowed:
                continue
            overlap = len(query & _tokens(m.text))
            if not overlap:
                continue
            matches.append(
                SearchMatch(
                    message_id=m.id,
                    thread_id=m.thread_id,
                    sender_id=m.sender_id,
                    text=m.text,
                    timestamp=m.timestamp,
                    relevance_score=round(overlap / len(query), 4),
                )
            )
        matches.sort(key=lambda x: (-x.relevance_score, -x.timestamp.timestamp()))
        return matches[:limit]


class ExtractiveGenerationService:
    """Deterministic stand-in for the generation service.

    Summaries are extractive, action items and decisions are found with
    phrase rules over the transcript lines. There is no local classifier:
    ``classify`` always reports the service as unavailable, which exercises
    the heuristic fallback of ``categorizeMessage``.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self._latency = latency

    async def _pause(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    @staticmethod
    def _lines(text: str) -> List[Tuple[str, str, str]]:
        parsed = []
        for raw in text.splitlines():
            m = TRANSCRIPT_LINE_RE.match(raw.strip())
            if m:
                parsed.append((m.group("message_id"), m.group("sender_id"), m.group("text")))
        return parsed

    async def summarize(self, text: str) -> GeneratedSummary:
        await self._pause()
        lines = self._lines(text)
        bodies = [body for _, _, body in lines if body]
        summary = " ".join(bodies[:3])
        decisions = sum(1 for body in bodies if _DECISION_RE.search(body))
        return GeneratedSummary(summary=summary, key_points=bodies[:5], decision_count=decisions)

    async def extract(self, text: str, kind: ExtractionKind) -> List[ExtractedItem]:
        await self._pause()
        lines = self._lines(text)
        if kind == ExtractionKind.action_items:
            items = []
            for message_id, sender_id, body in lines:
                if not _ACTION_RE.search(body):
                    continue
                mention = _ASSIGNEE_RE.search(body)
                items.append(
                    ExtractedItem(
                        text=body,
                        source_message_id=message_id,
                        assignee=mention.group(1) if mention else sender_id,
                    )
                )
            return items
        if kind == ExtractionKind.decisions:
            return [
                ExtractedItem(text=body, source_message_id=message_id, participants=[sender_id], confidence=0.8)
                for message_id, sender_id, body in lines
                if _DECISION_RE.search(body)
            ]
        intents = [(message_id, body) for message_id, _, body in lines if has_scheduling_intent(body)]
        if not intents:
            return []
        message_id, body = intents[-1]
        return [
            ExtractedItem(
                text=body,
                source_message_id=message_id,
                duration_minutes=guess_duration(body),
                urgency=guess_urgency(body),
            )
        ]

    async def classify(self, text: str) -> Classification:
        await self._pause()
        raise CollaboratorUnavailableError("no classification model configured", collaborator="generation")


class InMemoryCalendarSource:
    """Busy intervals and non-meeting windows per user."""

    def __init__(
        self,
        busy: Optional[Dict[str, List[TimeInterval]]] = None,
        non_meeting: Optional[Dict[str, List[NonMeetingWindow]]] = None,
    ) -> None:
        self._busy: Dict[str, List[TimeInterval]] = {k: list(v) for k, v in (busy or {}).items()}
        self._non_meeting: Dict[str, List[NonMeetingWindow]] = {k: list(v) for k, v in (non_meeting or {}).items()}

    def add_busy(self, user_id: str, start: datetime, end: datetime) -> None:
        self._busy.setdefault(user_id, []).append(TimeInterval(start=start, end=end))

    def add_non_meeting_window(self, user_id: str, window: NonMeetingWindow) -> None:
        self._non_meeting.setdefault(user_id, []).append(window)

    async def free_busy(self, user_id: str, start: datetime, end: datetime) -> List[TimeInterval]:
        return [i for i in self._busy.get(user_id, []) if i.start < end and i.end > start]

    async def non_meeting_hours(self, user_id: str) -> List[NonMeetingWindow]:
        return list(self._non_meeting.get(user_id, []))
