from __future__ import annotations

"""Capability dispatch orchestrator.

``CapabilityOrchestrator.dispatch`` turns one ``CallEnvelope`` into exactly one
``ExecutionResult`` or ``ExecutionError`` and exactly one
``ExecutionLogEntry``.

Dispatch sequence
-----------------

1. Resolve the capability in the registry (unknown -> ``invalid_capability``).
2. Validate parameters (violations -> ``invalid_parameters``).
3. Check permission (denied -> ``permission_denied``).
4. Run the handler as a task under the capability's deadline. On expiry the
   orchestrator stops waiting and returns ``timeout``; the task is not
   cancelled, its late outcome is only logged.
5. Map the outcome into the error taxonomy and record the log entry.

Steps 1-3 short-circuit: no handler runs for a rejected call. ``dispatch``
never raises; anything unexpected becomes ``internal_error``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Set

from ...core.monitoring import log_capability_execution
from ..audit.digest import digest_parameters
from ..audit.logger import ExecutionLogger
from ..capabilities.base import CapabilityContext, CapabilityExecutionError
from ..capabilities.registry import CapabilityRegistry, CapabilitySchema
from ..collaborators.errors import CollaboratorError, ResourceNotFoundError
from ..collaborators.interfaces import CollaboratorDeps
from ..policy.permission import PermissionChecker
from ..schemas.config import DispatchConfig
from ..schemas.domain import (
    CallEnvelope,
    ErrorCode,
    ExecutionError,
    ExecutionLogEntry,
    ExecutionOutcome,
    ExecutionResponse,
    ExecutionResult,
    new_execution_id,
)
from ..validation.validator import validate
from .deadline import Deadline, deadline_scope

logger = logging.getLogger(__name__)

MAX_LOGGED_NAME_CHARS = 64


@dataclass(frozen=True)
class OrchestratorDeps:
    """Dependency bundle for ``CapabilityOrchestrator``.

    This object is constructed by application wiring code (or tests). It
    holds the immutable registry, the permission checker, the collaborator
    implementations handed to handlers and the execution logger.
    """

    registry: CapabilityRegistry
    permissions: PermissionChecker
    collaborators: CollaboratorDeps
    execution_log: ExecutionLogger


class CapabilityOrchestrator:
    """Stateless dispatcher; one instance serves every concurrent call."""

    def __init__(self, deps: OrchestratorDeps, *, config: Optional[DispatchConfig] = None) -> None:
        self._deps = deps
        self._cfg = config or DispatchConfig()
        # strong references to handler tasks abandoned after a timeout
        self._abandoned: Set[asyncio.Task[Any]] = set()

    @property
    def registry(self) -> CapabilityRegistry:
        return self._deps.registry

    @property
    def config(self) -> DispatchConfig:
        return self._cfg

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def dispatch(self, envelope: CallEnvelope) -> ExecutionResponse:
        """
        Execute one capability call end to end.

        Args:
            envelope: The call envelope built by the transport.

        Returns:
            ``ExecutionResult`` on success, otherwise ``ExecutionError``. Never raises.
        """
        execution_id = new_execution_id()
        started_at = datetime.now(timezone.utc)
        t0 = time.perf_counter()
        try:
            response = await self._run(execution_id, envelope)
        except Exception as e:
            logger.exception(f"Unhandled dispatch failure: execution_id={execution_id} error={e!r}")
            response = ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.internal_error,
                message="Internal error while executing the capability",
            )
        duration_ms = (time.perf_counter() - t0) * 1000.0
        self._record(envelope, response, started_at, duration_ms)
        return response

    async def _run(self, execution_id: str, envelope: CallEnvelope) -> ExecutionResponse:
        schema = self._deps.registry.resolve(envelope.capability_name)
        if schema is None:
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.invalid_capability,
                message="Unknown capability",
                details={"available": self._deps.registry.names()},
            )

        validation = validate(schema, envelope.parameters)
        if not validation.ok:
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.invalid_parameters,
                message=f"{len(validation.violations)} parameter violation(s)",
                details={"violations": [v.as_dict() for v in validation.violations]},
            )
        params = validation.normalized_parameters

        decision = await self._deps.permissions.check(envelope.caller_id, schema.name, params)
        if not decision.allowed:
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.permission_denied,
                message=decision.reason or "Permission denied",
            )

        return await self._invoke(execution_id, envelope.caller_id, schema, params)

    async def _invoke(self, execution_id: str, caller_id: str, schema: CapabilitySchema, params: Any) -> ExecutionResponse:
        budget = self._cfg.deadline_for(schema.name)
        deadline = Deadline(budget)
        ctx = CapabilityContext(
            caller_id=caller_id,
            execution_id=execution_id,
            deps=self._deps.collaborators,
            deadline=deadline,
            fallback_reserve=self._cfg.fallback_reserve_seconds,
        )
        with deadline_scope(deadline):
            task = asyncio.create_task(schema.handler.execute(ctx, params=params))

        done, _ = await asyncio.wait({task}, timeout=deadline.remaining())
        if task not in done:
            self._abandon(task, execution_id, schema)
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.timeout,
                message=f"Capability did not complete within {budget:g}s",
            )

        try:
            data = task.result()
        except ResourceNotFoundError as e:
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.upstream_unavailable,
                message=f"The requested {e.resource} was not found",
                details={"reason": "not_found", "resource": e.resource},
            )
        except CollaboratorError as e:
            logger.warning(f"Collaborator failure: execution_id={execution_id} collaborator={e.collaborator} error={e}")
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.upstream_unavailable,
                message=f"The {e.collaborator} service is unavailable",
                details={"collaborator": e.collaborator},
            )
        except CapabilityExecutionError as e:
            return ExecutionError(execution_id=execution_id, code=e.code, message=e.message, details=e.details)
        except asyncio.TimeoutError:
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.timeout,
                message="A collaborator call exceeded the deadline",
            )
        except Exception as e:
            logger.exception(f"Handler failed: execution_id={execution_id} capability={schema.name.value} error={e!r}")
            return ExecutionError(
                execution_id=execution_id,
                code=ErrorCode.internal_error,
                message="Internal error while executing the capability",
            )

        return ExecutionResult(execution_id=execution_id, data=schema.dump_result(data))

    def _abandon(self, task: asyncio.Task[Any], execution_id: str, schema: CapabilitySchema) -> None:
        self._abandoned.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._abandoned.discard(t)
            if t.cancelled():
                outcome = "cancelled"
            elif t.exception() is not None:
                outcome = f"failed ({type(t.exception()).__name__})"
            else:
                outcome = "completed"
            logger.info(
                f"Abandoned handler finished after timeout: execution_id={execution_id} "
                f"capability={schema.name.value} outcome={outcome}"
            )

        task.add_done_callback(_done)

    def _record(self, envelope: CallEnvelope, response: ExecutionResponse, started_at: datetime, duration_ms: float) -> None:
        error_code = response.code if isinstance(response, ExecutionError) else None
        outcome = ExecutionOutcome.error if error_code is not None else ExecutionOutcome.ok
        name = str(envelope.capability_name)[:MAX_LOGGED_NAME_CHARS]
        try:
            schema = self._deps.registry.resolve(envelope.capability_name)
            declared = {spec.name for spec in schema.parameter_spec} if schema is not None else set()
            entry = ExecutionLogEntry(
                execution_id=response.execution_id,
                capability_name=name,
                caller_id=envelope.caller_id,
                parameters_digest=digest_parameters(envelope.parameters, declared),
                started_at=started_at,
                duration_ms=round(duration_ms, 3),
                outcome=outcome,
                error_code=error_code,
            )
            self._deps.execution_log.record(entry)
        except Exception as e:
            logger.error(f"Could not record execution log entry: execution_id={response.execution_id} error={e!r}")

        log_capability_execution(
            execution_id=response.execution_id,
            capability_name=name,
            outcome=outcome.value,
            duration_ms=duration_ms,
            error_code=error_code.value if error_code else None,
        )
        logger.info(
            f"Capability dispatched: execution_id={response.execution_id} capability={name} "
            f"outcome={outcome.value} error_code={error_code.value if error_code else '-'} "
            f"duration_ms={duration_ms:.1f}"
        )

