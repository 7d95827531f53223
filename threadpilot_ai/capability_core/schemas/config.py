"""Domain models for dispatch configuration.

These grouped models are what the capability core consumes. The server's
``Settings`` builds them from flat environment variables.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, PositiveFloat

from .domain import CapabilityName


class DispatchConfig(BaseModel):
    """Deadline and permission budget used by the orchestrator."""

    deadline_seconds: float = Field(default=2.0, gt=0.0, description="Default hard deadline per invocation")
    capability_deadlines: Dict[CapabilityName, PositiveFloat] = Field(
        default_factory=dict,
        description="Per-capability deadline overrides keyed by capability name; unknown names are rejected",
    )
    permission_timeout_seconds: float = Field(
        default=0.5, gt=0.0, description="Upper bound for a single permission check"
    )
    fallback_reserve_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Part of the deadline kept back so a handler can finish its fallback path",
    )

    def deadline_for(self, capability_name: Union[CapabilityName, str]) -> float:
        """Return the deadline in seconds for one capability."""
        # enum members hash by name, so plain wire names are converted first
        return float(self.capability_deadlines.get(CapabilityName(capability_name), self.deadline_seconds))


class ExecutionLogConfig(BaseModel):
    """Execution log queue and sink configuration."""

    queue_size: int = Field(default=1000, ge=1, description="Bounded queue capacity (oldest dropped when full)")
    max_retries: int = Field(default=2, ge=0, description="Retries for a failed sink write before dropping")
    retry_backoff_seconds: float = Field(default=0.1, ge=0.0, description="Base backoff between retries")
    database_url: Optional[str] = Field(
        default=None, description="Async SQLAlchemy URL for the execution log table; in-memory when unset"
    )


class CollaboratorConfig(BaseModel):
    """Endpoints of the external collaborators consumed by the handlers."""

    mode: Literal["memory", "http"] = Field(default="memory", description="Collaborator wiring mode")
    message_store_url: str = Field(default="http://message-store:8080")
    membership_url: str = Field(default="http://membership:8080")
    retrieval_url: str = Field(default="http://retrieval:8080")
    calendar_url: str = Field(default="http://calendar:8080")
    auth_token: Optional[str] = Field(default=None, description="Bearer token sent to collaborator services")
    generation_model: str = Field(default="openai:gpt-4o", description="pydantic-ai model id for generation")

