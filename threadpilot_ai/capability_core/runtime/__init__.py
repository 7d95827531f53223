"""Dispatch runtime.

The main entry point is ``CapabilityOrchestrator``. ``deadline`` holds the
per-invocation budget that is shared with handlers and collaborator adapters
through a context variable.
"""

from .deadline import Deadline, current_deadline, deadline_scope, request_timeout
from .orchestrator import CapabilityOrchestrator, OrchestratorDeps

__all__ = [
    "CapabilityOrchestrator",
    "OrchestratorDeps",
    "Deadline",
    "current_deadline",
    "deadline_scope",
    "request_timeout",
]
