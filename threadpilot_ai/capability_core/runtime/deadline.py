"""Per-invocation deadline propagated through a context variable.

The orchestrator opens a ``deadline_scope`` before it spawns the handler task.
``asyncio`` copies the context into the task, so the handler and every
collaborator adapter it awaits can read the same budget through
``current_deadline()`` without it being threaded through each signature.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Optional

# httpx rejects a zero timeout as "no timeout"; keep a tiny positive floor
_MIN_TIMEOUT_SECONDS = 0.001


class Deadline:
    """A fixed wall-clock budget measured on the monotonic clock."""

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        if seconds <= 0:
            raise ValueError("deadline budget must be positive")
        self._clock = clock
        self.budget = float(seconds)
        self.expires_at = clock() + self.budget

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def __repr__(self) -> str:
        return f"Deadline(budget={self.budget:.3f}s, remaining={self.remaining():.3f}s)"


_current_deadline: ContextVar[Optional[Deadline]] = ContextVar("threadpilot_ai_deadline", default=None)


def current_deadline() -> Optional[Deadline]:
    """Return the deadline of the dispatch running in this context, if any."""
    return _current_deadline.get()


@contextmanager
def deadline_scope(deadline: Deadline) -> Iterator[Deadline]:
    token = _current_deadline.set(deadline)
    try:
        yield deadline
    finally:
        _current_deadline.reset(token)


def request_timeout(default: float) -> float:
    """
    Timeout for one outbound collaborator call.

    Returns the smaller of ``default`` and the time left on the active
    deadline, so abandoned work stops close to its source.
    """
    deadline = current_deadline()
    if deadline is None:
        return default
    return max(_MIN_TIMEOUT_SECONDS, min(default, deadline.remaining()))
