from __future__ import annotations

"""Dispatch domain models.

These models describe one invocation from the moment the transport builds a
``CallEnvelope`` until the orchestrator hands back an ``ExecutionResult`` or an
``ExecutionError`` and records a single ``ExecutionLogEntry``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import ConfigDict, Field

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_execution_id() -> str:
    return str(uuid4())


class CapabilityName(str, Enum):
    search_messages = "searchMessages"
    summarize_thread = "summarizeThread"
    extract_action_items = "extractActionItems"
    track_decisions = "trackDecisions"
    categorize_message = "categorizeMessage"
    detect_scheduling_need = "detectSchedulingNeed"
    check_calendar = "checkCalendar"
    suggest_meeting_times = "suggestMeetingTimes"


class ErrorCode(str, Enum):
    invalid_capability = "invalid_capability"
    invalid_parameters = "invalid_parameters"
    permission_denied = "permission_denied"
    timeout = "timeout"
    upstream_unavailable = "upstream_unavailable"
    internal_error = "internal_error"


class ExecutionOutcome(str, Enum):
    ok = "ok"
    error = "error"


class CallEnvelope(BaseSchema):
    """One invocation request as built by the transport.

    ``caller_id`` is attached from the verified identity; the payload never
    supplies it. The envelope is frozen once created.
    """

    model_config = ConfigDict(frozen=True)

    # Both untyped until resolved: a non-string name is an invalid_capability error,
    # a non-object payload an invalid_parameters error.
    capability_name: Any = None
    parameters: Any = Field(default_factory=dict)
    caller_id: str


@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure."""

    field: str
    reason: str

    def as_dict(self) -> Dict[str, str]:
        return {"field": self.field, "reason": self.reason}


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating raw parameters against a capability schema.

    Attributes:
        ok: True when no violation was found.
        normalized_parameters: The typed parameter model (defaults applied) when ``ok``.
        violations: Every violation found, not only the first one.
    """

    ok: bool
    normalized_parameters: Optional[Any] = None
    violations: List[Violation] = field(default_factory=list)


@dataclass(frozen=True)
class PermissionDecision:
    """
    Result of a permission check for a single invocation.

    Never cached: membership can change between calls.
    """

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "PermissionDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "PermissionDecision":
        return cls(allowed=False, reason=reason)


class ExecutionResult(BaseSchema):
    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    execution_id: str
    data: Any = None


class ExecutionError(BaseSchema):
    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    execution_id: str
    code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None


ExecutionResponse = Union[ExecutionResult, ExecutionError]


class ExecutionLogEntry(BaseSchema):
    """Sanitized audit record, written exactly once per invocation."""

    model_config = ConfigDict(frozen=True)

    execution_id: str
    capability_name: str
    caller_id: str
    parameters_digest: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=_utc_now)
    duration_ms: float = 0.0
    outcome: ExecutionOutcome
    error_code: Optional[ErrorCode] = None


def response_to_wire(response: ExecutionResponse) -> Dict[str, Any]:
    """Wire envelope of a dispatch response.

    ``data`` is kept even when it is ``None`` (absence is a valid result).
    """
    if isinstance(response, ExecutionResult):
        return {"status": "ok", "executionId": response.execution_id, "data": response.data}
    body: Dict[str, Any] = {
        "status": "error",
        "executionId": response.execution_id,
        "code": response.code.value,
        "message": response.message,
    }
    if response.details is not None:
        body["details"] = response.details
    return body
