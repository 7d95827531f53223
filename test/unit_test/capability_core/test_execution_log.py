"""
Unit tests for the execution log pipeline.

This test suite covers:
- Parameter digests (no raw strings)
- The bounded queue dropping its oldest entry
- Retry with backoff and dropping after the retry budget
- The SQL sink on SQLite (write, filters, ordering)
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from threadpilot_ai.capability_core.audit.digest import (
    MAX_KEYS,
    UNKNOWN_KEYS,
    digest_parameters,
    fingerprint,
)
from threadpilot_ai.capability_core.audit.logger import ExecutionLogger
from threadpilot_ai.capability_core.audit.models import Base
from threadpilot_ai.capability_core.audit.sinks import InMemoryExecutionLogSink
from threadpilot_ai.capability_core.audit.sql import (
    SqlExecutionLogSink,
    create_all,
    create_engine,
    create_sessionmaker,
)
from threadpilot_ai.capability_core.schemas.domain import ErrorCode, ExecutionLogEntry, ExecutionOutcome

T0 = datetime(2025, 3, 3, 9, tzinfo=timezone.utc)


def entry(i: int, *, caller_id="alice", name="searchMessages", outcome=ExecutionOutcome.ok) -> ExecutionLogEntry:
    return ExecutionLogEntry(
        execution_id=f"e{i}",
        capability_name=name,
        caller_id=caller_id,
        parameters_digest={"limit": i},
        started_at=T0 + timedelta(seconds=i),
        duration_ms=1.5,
        outcome=outcome,
        error_code=ErrorCode.timeout if outcome == ExecutionOutcome.error else None,
    )


class _FlakySink(InMemoryExecutionLogSink):
    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def write(self, e):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("sink unavailable")
        await super().write(e)


class TestDigest:
    def test_strings_are_fingerprinted(self):
        digest = digest_parameters(
            {"query": "quarterly numbers", "limit": 5, "exact": True}, {"query", "limit", "exact"}
        )

        assert digest["query"] == {"type": "string", "length": 17, "sha256": fingerprint("quarterly numbers")}
        assert digest["limit"] == 5
        assert digest["exact"] is True

    def test_containers_are_sized(self):
        digest = digest_parameters(
            {"participants": ["alice", "bob"], "range": {"start": "09:00"}}, {"participants", "range"}
        )

        assert digest == {"participants": {"type": "array", "size": 2}, "range": {"type": "object", "size": 1}}

    def test_non_object_parameters(self):
        assert digest_parameters("raw text") == {"_parameters": {"type": "string", "length": 8, "sha256": fingerprint("raw text")}}

    def test_undeclared_keys_are_fingerprinted(self):
        secret = "confidential merger with acme corp"

        digest = digest_parameters({"query": "q", secret: 1, 7: "x"}, {"query"})

        assert set(digest) == {"query", UNKNOWN_KEYS}
        assert digest[UNKNOWN_KEYS] == [
            {"type": "string", "length": len(secret), "sha256": fingerprint(secret)},
            {"type": "string", "length": 1, "sha256": fingerprint("7")},
        ]
        assert secret not in repr(digest)

    def test_unknown_capability_keeps_no_key(self):
        digest = digest_parameters({"query": "q"})

        assert list(digest) == [UNKNOWN_KEYS]

    def test_key_count_is_bounded(self):
        digest = digest_parameters({f"k{i}": i for i in range(MAX_KEYS + 8)}, {f"k{i}" for i in range(MAX_KEYS + 8)})

        assert digest["_truncated_keys"] == 8
        assert len(digest) == MAX_KEYS + 1


class TestExecutionLogger:
    async def test_full_queue_drops_oldest(self):
        sink = InMemoryExecutionLogSink()
        logger = ExecutionLogger(sink, queue_size=2)

        for i in range(3):
            logger.record(entry(i))
        await logger.flush()

        assert logger.dropped_count == 1
        assert [e.execution_id for e in sink.entries] == ["e1", "e2"]

    async def test_record_does_not_wait_for_the_sink(self):
        class _SlowSink(InMemoryExecutionLogSink):
            async def write(self, e):
                await asyncio.sleep(0.5)
                await super().write(e)

        logger = ExecutionLogger(_SlowSink())
        await logger.start()
        loop = asyncio.get_running_loop()
        started = loop.time()

        logger.record(entry(1))

        assert loop.time() - started < 0.05
        await logger.aclose(timeout=2.0)
        assert logger.written_count == 1

    async def test_failed_write_is_retried(self):
        sink = _FlakySink(failures=2)
        logger = ExecutionLogger(sink, max_retries=2, retry_backoff_seconds=0.01)
        await logger.start()

        logger.record(entry(1))
        await logger.flush()
        await logger.aclose()

        assert sink.attempts == 3
        assert logger.written_count == 1
        assert logger.failed_count == 0

    async def test_entry_dropped_after_retry_budget(self):
        sink = _FlakySink(failures=10)
        logger = ExecutionLogger(sink, max_retries=1, retry_backoff_seconds=0.0)

        logger.record(entry(1))
        logger.record(entry(2))
        await logger.flush()

        assert logger.failed_count == 2
        assert sink.entries == []

    async def test_aclose_is_bounded(self):
        class _StuckSink(InMemoryExecutionLogSink):
            async def write(self, e):
                await asyncio.sleep(10)

        logger = ExecutionLogger(_StuckSink())
        await logger.start()
        logger.record(entry(1))

        await asyncio.wait_for(logger.aclose(timeout=0.1), timeout=1.0)


class TestInMemorySink:
    async def test_list_filters_newest_first(self):
        sink = InMemoryExecutionLogSink()
        for i in range(5):
            await sink.write(entry(i, caller_id="alice" if i % 2 == 0 else "bob"))

        entries = await sink.list(caller_id="alice", limit=2)

        assert [e.execution_id for e in entries] == ["e4", "e2"]


@pytest.fixture(params=["sqlite", "postgres"])
async def sql_sink(request, tmp_path, test_config):
    if request.param == "postgres":
        if not test_config.enable_postgres_tests:
            pytest.skip("PostgreSQL tests are disabled (TEST_ENABLE_POSTGRES_TESTS)")
        url = test_config.postgres_url
    else:
        url = f"sqlite:///{tmp_path / 'execution_log.db'}"
    engine = create_engine(url)
    await create_all(engine)
    yield SqlExecutionLogSink(create_sessionmaker(engine))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


class TestSqlSink:
    async def test_url_is_normalized_to_async_drivers(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'x.db'}")
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
        finally:
            await engine.dispose()

    async def test_write_and_read_back(self, sql_sink):
        original = entry(1)

        await sql_sink.write(original)
        [loaded] = await sql_sink.list()

        assert loaded == original
        assert loaded.started_at.tzinfo is not None

    async def test_filters_and_ordering(self, sql_sink):
        await sql_sink.write(entry(1, caller_id="alice"))
        await sql_sink.write(entry(2, caller_id="alice", name="checkCalendar", outcome=ExecutionOutcome.error))
        await sql_sink.write(entry(3, caller_id="bob"))
        await sql_sink.write(entry(4, caller_id="alice"))

        assert [e.execution_id for e in await sql_sink.list(caller_id="alice")] == ["e4", "e2", "e1"]
        assert [e.execution_id for e in await sql_sink.list(capability_name="checkCalendar")] == ["e2"]
        errors = await sql_sink.list(outcome=ExecutionOutcome.error)
        assert [(e.execution_id, e.error_code) for e in errors] == [("e2", ErrorCode.timeout)]
        assert len(await sql_sink.list(limit=2)) == 2

    async def test_logger_drains_into_sql(self, sql_sink):
        logger = ExecutionLogger(sql_sink)
        await logger.start()

        for i in range(10):
            logger.record(entry(i))
        await logger.aclose()

        assert len(await sql_sink.list(limit=100)) == 10
