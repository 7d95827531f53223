from __future__ import annotations

"""Convenience factories for wiring the capability core.

This module contains small helpers to build the collaborator bundle, the
execution logger and a ``CapabilityOrchestrator`` from the grouped
configuration models.

The intent is to keep application wiring and tests concise, while still
allowing deployments to provide their own registry or collaborators.
"""

import logging
from dataclasses import fields
from typing import Optional

from .audit.logger import ExecutionLogger
from .audit.sinks import ExecutionLogSink, InMemoryExecutionLogSink
from .audit.sql import SqlExecutionLogSink, create_all, create_engine, create_sessionmaker
from .capabilities.registry import CapabilityRegistry, build_default_registry
from .collaborators.generation import PydanticAIGenerationService
from .collaborators.http import HttpCalendarSource, HttpMembershipService, HttpMessageStore, HttpRetrievalService
from .collaborators.interfaces import CollaboratorDeps
from .collaborators.memory import (
    ExtractiveGenerationService,
    InMemoryCalendarSource,
    InMemoryMembershipService,
    InMemoryMessageStore,
    InMemoryRetrievalService,
)
from .policy.permission import PermissionChecker
from .runtime.orchestrator import CapabilityOrchestrator, OrchestratorDeps
from .schemas.config import CollaboratorConfig, DispatchConfig, ExecutionLogConfig

logger = logging.getLogger(__name__)


def build_collaborators(config: CollaboratorConfig) -> CollaboratorDeps:
    """Build the collaborator bundle for the configured mode (``memory`` or ``http``)."""
    if config.mode == "memory":
        store = InMemoryMessageStore()
        membership = InMemoryMembershipService()
        return CollaboratorDeps(
            message_store=store,
            membership=membership,
            retrieval=InMemoryRetrievalService(store, membership),
            generation=ExtractiveGenerationService(),
            calendar=InMemoryCalendarSource(),
        )

    token = config.auth_token
    return CollaboratorDeps(
        message_store=HttpMessageStore(config.message_store_url, auth_token=token),
        membership=HttpMembershipService(config.membership_url, auth_token=token),
        retrieval=HttpRetrievalService(config.retrieval_url, auth_token=token),
        generation=PydanticAIGenerationService(config.generation_model),
        calendar=HttpCalendarSource(config.calendar_url, auth_token=token),
    )


async def close_collaborators(deps: CollaboratorDeps) -> None:
    """Close the HTTP clients owned by the collaborator adapters."""
    for f in fields(deps):
        aclose = getattr(getattr(deps, f.name), "aclose", None)
        if aclose is not None:
            await aclose()


async def build_execution_log_sink(config: ExecutionLogConfig) -> ExecutionLogSink:
    """SQL sink when a database URL is configured, otherwise in-memory."""
    if not config.database_url:
        logger.info("Execution log: in-memory sink")
        return InMemoryExecutionLogSink()
    engine = create_engine(config.database_url)
    await create_all(engine)
    logger.info(f"Execution log: SQL sink ({engine.url.render_as_string(hide_password=True)})")
    return SqlExecutionLogSink(create_sessionmaker(engine))


def build_execution_logger(sink: ExecutionLogSink, config: ExecutionLogConfig) -> ExecutionLogger:
    return ExecutionLogger(
        sink,
        queue_size=config.queue_size,
        max_retries=config.max_retries,
        retry_backoff_seconds=config.retry_backoff_seconds,
    )


def build_orchestrator(
    *,
    collaborators: CollaboratorDeps,
    execution_log: ExecutionLogger,
    dispatch: Optional[DispatchConfig] = None,
    registry: Optional[CapabilityRegistry] = None,
) -> CapabilityOrchestrator:
    """Construct a ``CapabilityOrchestrator`` from config and dependencies."""
    dispatch = dispatch or DispatchConfig()
    deps = OrchestratorDeps(
        registry=registry or build_default_registry(),
        permissions=PermissionChecker(
            collaborators.membership,
            collaborators.message_store,
            timeout_seconds=dispatch.permission_timeout_seconds,
        ),
        collaborators=collaborators,
        execution_log=execution_log,
    )
    return CapabilityOrchestrator(deps, config=dispatch)
