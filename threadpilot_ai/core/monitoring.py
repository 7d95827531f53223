"""
Monitoring and Tracing Configuration Module.

This module provides optional integration with Pydantic Logfire for tracing
capability dispatches and API requests:
- Capability execution outcomes and latency
- API endpoint tracing
- HTTPX collaborator calls
- Error tracking

Everything here is a no-op unless ``LOGFIRE_ENABLED`` is set and a token is
configured, so the dispatch path never depends on the monitoring backend.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI

logger = logging.getLogger(__name__)

LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "threadpilot-ai-server")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.1.0")

LOGFIRE_TRACE_HTTPX = os.getenv("LOGFIRE_TRACE_HTTPX", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_FASTAPI = os.getenv("LOGFIRE_TRACE_FASTAPI", "true").lower() in ("true", "1", "yes")

_logfire_active = False


def initialize_logfire(app: FastAPI | None = None) -> None:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        app: FastAPI application instance for endpoint instrumentation (optional).
    """
    global _logfire_active

    if not LOGFIRE_ENABLED:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return

    if not LOGFIRE_TOKEN:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return

    try:
        import logfire

        logfire.configure(
            token=LOGFIRE_TOKEN,
            service_name=LOGFIRE_SERVICE_NAME,
            service_version=LOGFIRE_SERVICE_VERSION,
            environment=LOGFIRE_ENVIRONMENT,
        )

        if LOGFIRE_TRACE_HTTPX:
            try:
                logfire.instrument_httpx()
                logger.info("Logfire: HTTPX instrumentation enabled")
            except Exception as e:
                logger.warning(f"Failed to instrument HTTPX: {e}")

        if LOGFIRE_TRACE_FASTAPI and app is not None:
            try:
                logfire.instrument_fastapi(app=app)
                logger.info("Logfire: FastAPI instrumentation enabled")
            except Exception as e:
                logger.warning(f"Failed to instrument FastAPI: {e}")

        _logfire_active = True
        logger.info(
            f"Logfire monitoring initialized: environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}"
        )
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)


def log_capability_execution(
    execution_id: str,
    capability_name: str,
    outcome: str,
    duration_ms: float,
    error_code: Optional[str] = None,
) -> None:
    """
    Emit a capability dispatch outcome to Logfire.

    Only identifiers and the outcome are sent; parameters never leave the
    process through this path.
    """
    if not _logfire_active:
        return
    try:
        import logfire

        logfire.info(
            "Capability executed",
            execution_id=execution_id,
            capability_name=capability_name,
            outcome=outcome,
            duration_ms=duration_ms,
            error_code=error_code,
        )
    except Exception:
        logger.debug(f"Could not log capability execution to Logfire: execution_id={execution_id}")


def log_api_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    """
    Log an API request with performance metrics.

    Args:
        method: HTTP method
        path: Request path
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
    """
    if not _logfire_active:
        return
    try:
        import logfire

        logfire.info(
            "API request completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
        )
    except Exception:
        logger.debug(f"Could not log API request to Logfire: {method} {path}")


def log_error(error_type: str, error_message: str, context: Optional[dict] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type of error
        error_message: Error message
        context: Additional context dictionary
    """
    if not _logfire_active:
        return
    try:
        import logfire

        logfire.error(
            f"{error_type}: {error_message}",
            **(context or {}),
        )
    except Exception:
        logger.debug(f"Could not log error to Logfire: {error_type}")
