"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification.
"""

from fastapi import APIRouter, Request

from threadpilot_ai.server.core import constant

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server.",
    response_description="Status object.",
)
async def health_check(request: Request):
    """
    Health check endpoint.

    Also reports how many execution log entries are still waiting to be
    written and how many were dropped.
    """
    execution_logger = getattr(request.app.state, "execution_logger", None)
    body = {"status": "ok"}
    if execution_logger is not None:
        body["executionLog"] = {
            "pending": execution_logger.pending,
            "dropped": execution_logger.dropped_count,
            "failed": execution_logger.failed_count,
        }
    return body


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    """
    Get API version.

    Returns the current semantic version of the API and supported schema version.
    """
    return {"version": constant.API_VERSION, "schema_version": "v1"}
