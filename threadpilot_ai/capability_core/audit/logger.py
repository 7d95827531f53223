"""Fire-and-forget execution log writer.

``ExecutionLogger.record`` puts the entry on a bounded ``asyncio.Queue`` and
returns immediately; a single background task drains the queue into the
configured sink. When the queue is full the oldest pending entry is dropped,
so a slow or broken sink never adds latency to a dispatch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..schemas.domain import ExecutionLogEntry
from .sinks import ExecutionLogSink

logger = logging.getLogger(__name__)


class ExecutionLogger:
    """Bounded, asynchronously drained execution log queue."""

    def __init__(
        self,
        sink: ExecutionLogSink,
        *,
        queue_size: int = 1000,
        max_retries: int = 2,
        retry_backoff_seconds: float = 0.1,
    ) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[ExecutionLogEntry] = asyncio.Queue(maxsize=queue_size)
        self._max_retries = max_retries
        self._backoff = retry_backoff_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self.dropped_count = 0
        self.written_count = 0
        self.failed_count = 0

    @property
    def sink(self) -> ExecutionLogSink:
        return self._sink

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def record(self, entry: ExecutionLogEntry) -> None:
        """Enqueue an entry without waiting; drops the oldest entry when full."""
        while True:
            try:
                self._queue.put_nowait(entry)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self._queue.task_done()
                    self.dropped_count += 1
                    logger.warning(f"Execution log queue full; dropped oldest entry (total dropped={self.dropped_count})")
                except asyncio.QueueEmpty:
                    pass

    async def start(self) -> None:
        """Start the background drain task (idempotent)."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._drain(), name="threadpilot-execution-log-drain")

    async def flush(self) -> None:
        """Wait until every queued entry has been written or given up on."""
        if self._task is None or self._task.done():
            while not self._queue.empty():
                entry = self._queue.get_nowait()
                try:
                    await self._write(entry)
                finally:
                    self._queue.task_done()
            return
        await self._queue.join()

    async def aclose(self, timeout: float = 5.0) -> None:
        """Flush pending entries (bounded by ``timeout``) and stop the drain task."""
        try:
            await asyncio.wait_for(self.flush(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Execution log flush timed out; {self.pending} entries not written")
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _drain(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._write(entry)
            finally:
                self._queue.task_done()

    async def _write(self, entry: ExecutionLogEntry) -> None:
        for attempt in range(self._max_retries + 1):
            try:
                await self._sink.write(entry)
                self.written_count += 1
                return
            except Exception as e:
                if attempt >= self._max_retries:
                    self.failed_count += 1
                    logger.warning(
                        f"Dropping execution log entry after {attempt + 1} attempts: "
                        f"execution_id={entry.execution_id} error={e!r}"
                    )
                    return
                await asyncio.sleep(self._backoff * (2**attempt))
