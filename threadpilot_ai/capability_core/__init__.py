"""Capability dispatch core.

This package contains the part of the system that turns a capability name and
a loosely-typed parameter object into a validated, permission-checked,
deadline-bounded handler execution.

Design overview
---------------

- ``capabilities.registry``: the closed catalogue of eight capabilities,
  built once and self-checked at startup.
- ``validation.validator``: pure parameter validation against the catalogue.
- ``policy.permission``: per-call, fail-closed access decisions.
- ``capabilities.builtin``: the eight handlers.
- ``runtime.orchestrator``: the dispatcher racing handlers against a deadline
  and normalizing every outcome into the error taxonomy.
- ``audit``: the asynchronous, append-only execution log.
- ``collaborators``: contracts and adapters for the external subsystems.

Typical usage
-------------

Most applications should use the helpers in ``capability_core.factory``:

1. Build the collaborator bundle.
2. Build the execution log sink and logger, then ``await logger.start()``.
3. Build the orchestrator and ``await orchestrator.dispatch(envelope)``.
"""

from .schemas.domain import (
    CallEnvelope,
    CapabilityName,
    ErrorCode,
    ExecutionError,
    ExecutionLogEntry,
    ExecutionResult,
)

__all__ = [
    "CallEnvelope",
    "CapabilityName",
    "ErrorCode",
    "ExecutionError",
    "ExecutionLogEntry",
    "ExecutionResult",
]
