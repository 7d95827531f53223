from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from threadpilot_ai.capability_core.audit.logger import ExecutionLogger
from threadpilot_ai.capability_core.audit.sinks import InMemoryExecutionLogSink
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

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def collaborators() -> CollaboratorDeps:
    """One thread ``t1`` shared by alice and bob."""
    store = InMemoryMessageStore(
        [
            Message(id="m1", thread_id="t1", sender_id="alice", text="The launch deadline is Friday, urgent!", timestamp=T0),
            Message(
                id="m2",
                thread_id="t1",
                sender_id="bob",
                text="Can we schedule a 30 min call tomorrow?",
                timestamp=T0 + timedelta(minutes=5),
            ),
        ]
    )
    membership = InMemoryMembershipService(members={"t1": {"alice", "bob"}}, relationships=[("alice", "bob")])
    return CollaboratorDeps(
        message_store=store,
        membership=membership,
        retrieval=InMemoryRetrievalService(store, membership),
        generation=ExtractiveGenerationService(),
        calendar=InMemoryCalendarSource(),
    )


@pytest.fixture
def execution_logger() -> ExecutionLogger:
    return ExecutionLogger(InMemoryExecutionLogSink(), max_retries=0, retry_backoff_seconds=0.0)


@pytest_asyncio.fixture(name="client")
async def client_fixture(collaborators, execution_logger) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app, with the lifespan state installed by hand.

    ``ASGITransport`` does not run the lifespan, so the orchestrator and the
    execution logger are put on ``app.state`` directly.
    """
    from threadpilot_ai.server.main import app

    app.state.collaborators = collaborators
    app.state.execution_logger = execution_logger
    app.state.orchestrator = build_orchestrator(collaborators=collaborators, execution_log=execution_logger)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://mock") as client:
        yield client

    for name in ("collaborators", "execution_logger", "orchestrator"):
        delattr(app.state, name)


@pytest.fixture
def alice() -> dict:
    return {"X-Authenticated-User": "alice"}
