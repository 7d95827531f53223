"""Error types raised by collaborator adapters.

Purpose:
- Give handlers one exception family for every external subsystem failure, so
  the orchestrator can map them to ``upstream_unavailable`` without knowing
  which adapter (HTTP, pydantic-ai, in-memory) produced them.
- Keep HTTP-oriented context (status code, response body) for diagnosis.

Usage:
- Catch ``CollaboratorError`` for any failure and inspect ``collaborator``,
  ``status_code`` or ``details``.
- Catch ``ResourceNotFoundError`` when a thread/message lookup returns nothing.
"""

from __future__ import annotations

from typing import Any, Optional


class CollaboratorError(Exception):
    """Base error for collaborator failures.

    Args:
        message: Human-readable error description.
        collaborator: Logical collaborator name (``message_store``, ``calendar``...).
        status_code: Optional HTTP status code associated with the failure.
        details: Optional structured context (never raw message content).
    """

    def __init__(
        self,
        message: str,
        *,
        collaborator: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.collaborator = collaborator
        self.status_code = status_code
        self.details = details


class CollaboratorUnavailableError(CollaboratorError):
    """Raised when a collaborator is unreachable, times out or answers with an error status."""


class ResourceNotFoundError(CollaboratorError):
    """Raised when the requested thread or message does not exist.

    Args:
        collaborator: The collaborator that was asked.
        resource: Resource kind (``thread`` or ``message``).
        resource_id: The identifier that was not found.
    """

    def __init__(self, *, collaborator: str, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} not found: {resource_id}", collaborator=collaborator, status_code=404)
        self.resource = resource
        self.resource_id = resource_id
