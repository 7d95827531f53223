from __future__ import annotations

"""Capability protocol and execution context.

A capability handler is the concrete execution unit behind one of the eight
catalogue entries.

The orchestrator resolves ``CallEnvelope.capability_name`` through the
``CapabilityRegistry``, validates and permission-checks the parameters, and
only then awaits ``execute`` with the typed parameter model and a
``CapabilityContext``.

Handlers should:

- hold no mutable state (one instance serves every concurrent dispatch),
- return the typed result model (or ``None`` where absence is success),
- raise ``CollaboratorError`` for downstream failures and
  ``CapabilityExecutionError`` for anything they want to map to a specific
  error code,
- never perform permission decisions themselves.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from ..collaborators.interfaces import CollaboratorDeps
from ..schemas.domain import CapabilityName, ErrorCode

if TYPE_CHECKING:
    from ..runtime.deadline import Deadline


@dataclass(frozen=True)
class CapabilityContext:
    """Execution context passed to capability handlers.

    Attributes
    ----------
    caller_id:
        The verified caller, as attached by the transport.
    execution_id:
        Identifier of the current dispatch (also used in the log entry).
    deps:
        Collaborator implementations bundled in ``CollaboratorDeps``.
    deadline:
        The deadline the orchestrator races the handler against.
    fallback_reserve:
        Seconds of the deadline a handler keeps back for its fallback path.
    """

    caller_id: str
    execution_id: str
    deps: CollaboratorDeps
    deadline: Optional[Deadline] = None
    fallback_reserve: float = 0.25

    def time_left(self, *, keep_reserve: bool = False) -> Optional[float]:
        """Seconds left before the deadline (minus the reserve), or None without one."""
        if self.deadline is None:
            return None
        remaining = self.deadline.remaining()
        if keep_reserve:
            remaining -= self.fallback_reserve
        return max(0.0, remaining)


class CapabilityExecutionError(Exception):
    """Handler failure that maps to a specific taxonomy code.

    Args:
        code: The ``ErrorCode`` reported to the caller.
        message: Human-readable description (never raw message content).
        details: Optional structured context.
    """

    def __init__(self, code: ErrorCode, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class Capability(Protocol):
    """Protocol for capability handlers."""

    name: CapabilityName

    async def execute(self, ctx: CapabilityContext, *, params: Any) -> Any: ...
