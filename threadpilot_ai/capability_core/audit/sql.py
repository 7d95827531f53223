from __future__ import annotations

"""SQLAlchemy async execution log sink.

Usage
-----

Typical wiring (application startup or tests):

- Create an async engine with ``create_engine``.
- Create the table with ``create_all`` (for tests/dev; production typically
  manages the schema out of band).
- Create a session factory with ``create_sessionmaker``.
- Build ``SqlExecutionLogSink(session_factory)``.

Transaction model
-----------------

Each method opens an ``AsyncSession`` and commits before returning, so an
entry is durable once ``write`` returns.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..schemas.domain import ErrorCode, ExecutionLogEntry, ExecutionOutcome
from .models import Base, ExecutionLogRow
from .sinks import ExecutionLogSink


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes URLs to async drivers: ``postgres://`` and
    ``postgresql://`` variants become ``postgresql+asyncpg://`` and a plain
    ``sqlite://`` becomes ``sqlite+aiosqlite://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    url = re.sub(r"^sqlite://", "sqlite+aiosqlite://", url, count=1)
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata.

    This is mainly intended for tests and local development.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_entry(row: ExecutionLogRow) -> ExecutionLogEntry:
    return ExecutionLogEntry(
        execution_id=row.execution_id,
        capability_name=row.capability_name,
        caller_id=row.caller_id,
        parameters_digest=dict(row.parameters_digest or {}),
        started_at=_as_utc(row.started_at),
        duration_ms=row.duration_ms,
        outcome=ExecutionOutcome(row.outcome),
        error_code=ErrorCode(row.error_code) if row.error_code else None,
    )


@dataclass(frozen=True)
class SqlExecutionLogSink(ExecutionLogSink):
    """SQL implementation of ``ExecutionLogSink``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def write(self, entry: ExecutionLogEntry) -> None:
        """
        Insert one log row.

        Args:
            entry: The sanitized log entry to append.
        """
        async with self.session_factory() as s:
            s.add(
                ExecutionLogRow(
                    execution_id=entry.execution_id,
                    capability_name=entry.capability_name,
                    caller_id=entry.caller_id,
                    parameters_digest=dict(entry.parameters_digest),
                    started_at=entry.started_at,
                    duration_ms=entry.duration_ms,
                    outcome=entry.outcome.value,
                    error_code=entry.error_code.value if entry.error_code else None,
                )
            )
            await s.commit()

    async def list(
        self,
        *,
        caller_id: Optional[str] = None,
        capability_name: Optional[str] = None,
        outcome: Optional[ExecutionOutcome] = None,
        limit: int = 100,
    ) -> List[ExecutionLogEntry]:
        """
        Query entries, newest first.

        Args:
            caller_id: Only entries of this caller.
            capability_name: Only entries of this capability.
            outcome: Only ``ok`` or only ``error`` entries.
            limit: Maximum number of rows.
        """
        stmt = select(ExecutionLogRow)
        if caller_id is not None:
            stmt = stmt.where(ExecutionLogRow.caller_id == caller_id)
        if capability_name is not None:
            stmt = stmt.where(ExecutionLogRow.capability_name == capability_name)
        if outcome is not None:
            stmt = stmt.where(ExecutionLogRow.outcome == outcome.value)
        stmt = stmt.order_by(ExecutionLogRow.started_at.desc()).limit(limit)
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_entry(r) for r in rows]
