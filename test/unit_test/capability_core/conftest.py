from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from threadpilot_ai.capability_core.audit.logger import ExecutionLogger
from threadpilot_ai.capability_core.audit.sinks import InMemoryExecutionLogSink
from threadpilot_ai.capability_core.capabilities.registry import CapabilityRegistry, build_default_registry
from threadpilot_ai.capability_core.collaborators.interfaces import CollaboratorDeps
from threadpilot_ai.capability_core.collaborators.memory import (
    ExtractiveGenerationService,
    InMemoryCalendarSource,
    InMemoryMembershipService,
    InMemoryMessageStore,
    InMemoryRetrievalService,
)
from threadpilot_ai.capability_core.collaborators.models import Message
from threadpilot_ai.capability_core.factory import build_orchestrator
from threadpilot_ai.capability_core.runtime.orchestrator import CapabilityOrchestrator
from threadpilot_ai.capability_core.schemas.config import DispatchConfig

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)  # a Monday


def _msg(mid: str, thread_id: str, sender: str, text: str, minutes: int) -> Message:
    return Message(id=mid, thread_id=thread_id, sender_id=sender, text=text, timestamp=T0 + timedelta(minutes=minutes))


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    """Two threads: ``t1`` (alice, bob) about a launch, ``t2`` (carol, dave) about lunch."""
    store = InMemoryMessageStore(
        [
            _msg("m1", "t1", "alice", "The launch deadline is Friday, this is urgent!", 0),
            _msg("m2", "t1", "bob", "I will prepare the release notes @bob", 5),
            _msg("m3", "t1", "alice", "We decided to ship the beta first", 10),
            _msg("m4", "t1", "bob", "Can we schedule a 45 min call tomorrow to review the plan?", 15),
            _msg("m5", "t2", "carol", "thanks, sounds good", 0),
            _msg("m6", "t2", "dave", "lunch menu for next week is posted", 3),
        ]
    )
    store.add_thread("t-empty")
    return store


@pytest.fixture
def membership() -> InMemoryMembershipService:
    return InMemoryMembershipService(
        members={"t1": {"alice", "bob"}, "t2": {"carol", "dave"}, "t-empty": {"alice"}},
        relationships=[("alice", "bob"), ("alice", "carol")],
    )


@pytest.fixture
def calendar() -> InMemoryCalendarSource:
    return InMemoryCalendarSource()


@pytest.fixture
def collaborators(message_store, membership, calendar) -> CollaboratorDeps:
    return CollaboratorDeps(
        message_store=message_store,
        membership=membership,
        retrieval=InMemoryRetrievalService(message_store, membership),
        generation=ExtractiveGenerationService(),
        calendar=calendar,
    )


@pytest.fixture(scope="session")
def registry() -> CapabilityRegistry:
    return build_default_registry()


@pytest.fixture
def log_sink() -> InMemoryExecutionLogSink:
    return InMemoryExecutionLogSink()


@pytest.fixture
def execution_logger(log_sink) -> ExecutionLogger:
    # not started: tests flush inline
    return ExecutionLogger(log_sink, queue_size=1000, max_retries=0, retry_backoff_seconds=0.0)


@pytest.fixture
def make_orchestrator(collaborators, execution_logger, registry):
    def _make(
        *,
        deps: Optional[CollaboratorDeps] = None,
        dispatch: Optional[DispatchConfig] = None,
        custom_registry: Optional[CapabilityRegistry] = None,
    ) -> CapabilityOrchestrator:
        return build_orchestrator(
            collaborators=deps or collaborators,
            execution_log=execution_logger,
            dispatch=dispatch,
            registry=custom_registry or registry,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> CapabilityOrchestrator:
    return make_orchestrator()
