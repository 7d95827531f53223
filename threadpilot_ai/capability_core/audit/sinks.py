from __future__ import annotations

"""Execution log sink contract and in-memory implementation.

A sink persists ``ExecutionLogEntry`` records. Writes are append-only: an
entry is never updated after it is written. The SQL implementation lives in
``audit.sql``.
"""

from typing import List, Optional, Protocol

from ..schemas.domain import ExecutionLogEntry, ExecutionOutcome


class ExecutionLogSink(Protocol):
    """Append-only store for execution log entries."""

    async def write(self, entry: ExecutionLogEntry) -> None:
        """
        Persist one entry.

        Args:
            entry: The sanitized entry; ``execution_id`` is unique.
        """
        ...

    async def list(
        self,
        *,
        caller_id: Optional[str] = None,
        capability_name: Optional[str] = None,
        outcome: Optional[ExecutionOutcome] = None,
        limit: int = 100,
    ) -> List[ExecutionLogEntry]:
        """Return the most recent entries matching all given filters, newest first."""
        ...


class InMemoryExecutionLogSink:
    """List-backed sink for development and tests."""

    def __init__(self) -> None:
        self.entries: List[ExecutionLogEntry] = []

    async def write(self, entry: ExecutionLogEntry) -> None:
        self.entries.append(entry)

    async def list(
        self,
        *,
        caller_id: Optional[str] = None,
        capability_name: Optional[str] = None,
        outcome: Optional[ExecutionOutcome] = None,
        limit: int = 100,
    ) -> List[ExecutionLogEntry]:
        matches = [
            e
            for e in reversed(self.entries)
            if (caller_id is None or e.caller_id == caller_id)
            and (capability_name is None or e.capability_name == capability_name)
            and (outcome is None or e.outcome == outcome)
        ]
        return matches[:limit]
