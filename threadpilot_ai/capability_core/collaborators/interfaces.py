from __future__ import annotations

"""Collaborator interface contracts.

Handlers and the permission checker depend on these Protocols instead of
concrete adapters.

Contract guidelines
-------------------

- All methods are async.
- Every failure surfaces as a ``CollaboratorError`` subclass; a missing thread
  or message is a ``ResourceNotFoundError``.
- Implementations hold no per-invocation state and are safe to share between
  concurrent dispatches.
- Implementations that perform network I/O should bound each request by the
  active dispatch deadline (``runtime.deadline.current_deadline``).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Protocol

from ..schemas.capabilities import SearchMatch, TimeInterval
from .models import (
    Classification,
    ExtractedItem,
    ExtractionKind,
    GeneratedSummary,
    Message,
    NonMeetingWindow,
    Thread,
)


class MessageStore(Protocol):
    """Read-only access to threads and messages."""

    async def fetch_thread(self, thread_id: str) -> Thread:
        """
        Fetch a thread with its messages ordered oldest first.

        Raises:
            ResourceNotFoundError: If the thread does not exist.
        """
        ...

    async def fetch_message(self, message_id: str) -> Message:
        """
        Fetch a single message.

        Raises:
            ResourceNotFoundError: If the message does not exist.
        """
        ...


class MembershipService(Protocol):
    """Identity relationships used by the permission checker."""

    async def is_member(self, caller_id: str, thread_id: str) -> bool: ...

    async def has_scheduling_relationship(self, caller_id: str, user_id: str) -> bool: ...


class RetrievalService(Protocol):
    """Semantic retrieval over the message corpus."""

    async def query_similar(self, text: str, filters: Dict[str, Any], limit: int) -> List[SearchMatch]:
        """
        Return up to ``limit`` matches ranked by relevance.

        Args:
            text: The natural language query.
            filters: ``threadId`` restricts to one thread, ``memberId`` restricts
                to threads the given user belongs to.
            limit: Maximum number of matches.
        """
        ...


class GenerationService(Protocol):
    """Text generation service (summaries, structured extraction, classification)."""

    async def summarize(self, text: str) -> GeneratedSummary: ...

    async def extract(self, text: str, kind: ExtractionKind) -> List[ExtractedItem]: ...

    async def classify(self, text: str) -> Classification: ...


class CalendarSource(Protocol):
    """Free/busy data and declared non-meeting hours."""

    async def free_busy(self, user_id: str, start: datetime, end: datetime) -> List[TimeInterval]:
        """Return the busy intervals of ``user_id`` overlapping ``[start, end)``."""
        ...

    async def non_meeting_hours(self, user_id: str) -> List[NonMeetingWindow]: ...


@dataclass(frozen=True)
class CollaboratorDeps:
    """Bundle of collaborator implementations handed to handlers.

    Attributes
    ----------
    message_store:
        Thread and message lookup.
    membership:
        Thread membership and scheduling relationships.
    retrieval:
        Semantic search.
    generation:
        Summaries, extraction and classification.
    calendar:
        Free/busy and non-meeting hours.
    """

    message_store: MessageStore
    membership: MembershipService
    retrieval: RetrievalService
    generation: GenerationService
    calendar: CalendarSource
