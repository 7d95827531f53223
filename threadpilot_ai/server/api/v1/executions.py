"""
Execution Log Endpoints.

Read path for the execution log. A caller only ever sees its own entries.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query

from threadpilot_ai.capability_core.schemas.domain import ExecutionOutcome
from threadpilot_ai.core.logging_config import get_logger
from threadpilot_ai.server.services.deps import CallerIdDep, ExecutionLoggerDep

logger = get_logger(__name__)

router = APIRouter()

FLUSH_TIMEOUT_SECONDS = 1.0


@router.get(
    "",
    summary="List Executions",
    description="Retrieve the authenticated caller's most recent capability executions.",
    response_description="Sanitized execution log entries, newest first.",
)
async def list_executions(
    caller_id: CallerIdDep,
    execution_logger: ExecutionLoggerDep,
    capability_name: Optional[str] = Query(None, alias="capabilityName", description="Filter by capability."),
    outcome: Optional[ExecutionOutcome] = Query(None, description="Filter by outcome (ok or error)."),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries to return."),
) -> Dict[str, Any]:
    """
    List executions.

    Pending entries are flushed first so a caller sees the calls it just made.
    The flush is bounded; a slow sink only means the newest entries are missing.
    """
    try:
        await asyncio.wait_for(execution_logger.flush(), timeout=FLUSH_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Execution log flush timed out; listing persisted entries ({execution_logger.pending} pending)")
    entries = await execution_logger.sink.list(
        caller_id=caller_id,
        capability_name=capability_name,
        outcome=outcome,
        limit=limit,
    )
    return {"executions": [e.to_wire() for e in entries]}
