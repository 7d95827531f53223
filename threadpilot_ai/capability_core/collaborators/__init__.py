"""External collaborator contracts and adapters.

The capability core consumes five external subsystems it does not own:
the message store, the membership service, the retrieval service, the
generation service and the calendar source.

- ``interfaces``: async Protocols the handlers and permission checker depend on.
- ``http``: httpx adapters for the REST services.
- ``generation``: pydantic-ai adapter for the generation service.
- ``memory``: in-memory implementations for local development and tests.
"""

from .errors import CollaboratorError, CollaboratorUnavailableError, ResourceNotFoundError
from .interfaces import (
    CalendarSource,
    CollaboratorDeps,
    GenerationService,
    MembershipService,
    MessageStore,
    RetrievalService,
)

__all__ = [
    "CollaboratorError",
    "CollaboratorUnavailableError",
    "ResourceNotFoundError",
    "CollaboratorDeps",
    "MessageStore",
    "MembershipService",
    "RetrievalService",
    "GenerationService",
    "CalendarSource",
]
