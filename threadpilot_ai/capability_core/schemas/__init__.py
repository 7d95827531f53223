"""Schemas and DTOs for the capability core."""

from .domain import (
    CallEnvelope,
    CapabilityName,
    ErrorCode,
    ExecutionError,
    ExecutionLogEntry,
    ExecutionOutcome,
    ExecutionResponse,
    ExecutionResult,
    PermissionDecision,
    ValidationResult,
    Violation,
    response_to_wire,
)

__all__ = [
    "CallEnvelope",
    "CapabilityName",
    "ErrorCode",
    "ExecutionError",
    "ExecutionLogEntry",
    "ExecutionOutcome",
    "ExecutionResponse",
    "ExecutionResult",
    "PermissionDecision",
    "ValidationResult",
    "Violation",
    "response_to_wire",
]
