"""
Request Dependencies.

The orchestrator and the execution logger are built once in the application
lifespan and stored on ``app.state``; these helpers expose them to routers.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from threadpilot_ai.capability_core.audit.logger import ExecutionLogger
from threadpilot_ai.capability_core.runtime.orchestrator import CapabilityOrchestrator
from threadpilot_ai.server.core.config import settings


def get_orchestrator(request: Request) -> CapabilityOrchestrator:
    return request.app.state.orchestrator


def get_execution_logger(request: Request) -> ExecutionLogger:
    return request.app.state.execution_logger


def get_caller_id(request: Request) -> str:
    """
    Read the verified caller id from the trusted gateway header.

    Raises:
        HTTPException: 401 when the header is missing or blank.
    """
    caller_id: Optional[str] = request.headers.get(settings.caller_header)
    if caller_id is None or not caller_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated caller identity",
        )
    return caller_id.strip()


OrchestratorDep = Annotated[CapabilityOrchestrator, Depends(get_orchestrator)]
ExecutionLoggerDep = Annotated[ExecutionLogger, Depends(get_execution_logger)]
CallerIdDep = Annotated[str, Depends(get_caller_id)]
