"""
Global Exception Handler for FastAPI Application.

Capability failures never reach this handler: the orchestrator turns them into
error envelopes. This handler is the last line for anything raised by the
transport itself, and guarantees the client a JSON body it can decode.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from threadpilot_ai.core.logging_config import get_logger
from threadpilot_ai.core.monitoring import log_error

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unhandled exception and answer with a JSON error body.

    The body never contains the exception message, only an error id that
    correlates with the server log line.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with status 500
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc!r}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    log_error(type(exc).__name__, "Unhandled transport exception", {"path": request.url.path, "error_id": error_id})

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
