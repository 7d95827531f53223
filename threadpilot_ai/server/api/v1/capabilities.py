"""
Capability Endpoints.

This module exposes the capability dispatcher over HTTP: a single execute
endpoint that accepts one call envelope, and a catalogue endpoint that lists
the function-calling definitions the upstream assistant advertises.

Capability outcomes (success or failure) are always returned with HTTP 200
as the response envelope; only a missing caller identity is rejected at the
transport level (401).
"""

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import ConfigDict, Field

from threadpilot_ai.capability_core.schemas.base import BaseSchema
from threadpilot_ai.capability_core.schemas.domain import CallEnvelope, response_to_wire
from threadpilot_ai.core.logging_config import get_logger
from threadpilot_ai.server.services.deps import CallerIdDep, OrchestratorDep

logger = get_logger(__name__)

router = APIRouter()


class ExecuteCapabilityRequest(BaseSchema):
    """Request body of the execute endpoint.

    Unknown keys (notably a client-supplied ``callerId``) are ignored; the
    caller is taken from the authenticated identity only.
    """

    model_config = ConfigDict(extra="ignore")

    # Untyped so a missing or non-string name is answered as invalid_capability.
    capability_name: Any = Field(default=None, description="Name of the capability to invoke")
    parameters: Any = Field(default=None, description="Parameter object for the capability")


@router.post(
    "/execute",
    summary="Execute Capability",
    description="Invoke one capability on behalf of the authenticated caller.",
    response_description="Execution envelope with either data or a typed error.",
)
async def execute_capability(
    payload: ExecuteCapabilityRequest,
    caller_id: CallerIdDep,
    orchestrator: OrchestratorDep,
) -> Dict[str, Any]:
    """
    Execute a capability.

    Builds the call envelope from the body and the verified caller id, runs it
    through the orchestrator and returns the wire envelope.
    """
    envelope = CallEnvelope(
        capability_name=payload.capability_name,
        parameters=payload.parameters if payload.parameters is not None else {},
        caller_id=caller_id,
    )
    response = await orchestrator.dispatch(envelope)
    return response_to_wire(response)


@router.get(
    "",
    summary="List Capabilities",
    description="Retrieve the function-calling definitions of every capability.",
    response_description="Capability definitions.",
)
async def list_capabilities(orchestrator: OrchestratorDep) -> Dict[str, Any]:
    """
    List capabilities.

    Returns ``{name, description, parameters}`` entries, one per capability.
    """
    return {"capabilities": orchestrator.registry.tool_definitions()}
