"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS,
request timing), registers exception handlers and includes all API routers.
The capability orchestrator and the execution logger are built in the
lifespan and shared through ``app.state``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from threadpilot_ai.capability_core.factory import (
    build_collaborators,
    build_execution_log_sink,
    build_execution_logger,
    build_orchestrator,
    close_collaborators,
)
from threadpilot_ai.core.logging_config import get_logger, setup_logging
from threadpilot_ai.core.monitoring import initialize_logfire

from .api.v1 import capabilities, executions, health
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Startup builds the collaborators, the execution log pipeline and the
    orchestrator; the registry verifies itself while being built, so a broken
    catalogue aborts startup. Shutdown flushes the execution log and closes
    the collaborator clients.
    """
    logger.info("Starting up ThreadPilot-AI Server...")
    collaborators = build_collaborators(settings.collaborators)
    sink = await build_execution_log_sink(settings.execution_log)
    execution_logger = build_execution_logger(sink, settings.execution_log)
    await execution_logger.start()
    orchestrator = build_orchestrator(
        collaborators=collaborators,
        execution_log=execution_logger,
        dispatch=settings.dispatch,
    )

    app.state.collaborators = collaborators
    app.state.execution_logger = execution_logger
    app.state.orchestrator = orchestrator
    logger.info(
        f"Capability dispatcher ready: capabilities={len(orchestrator.registry)} "
        f"collaborators={settings.collaborator_mode} deadline={settings.deadline_seconds}s"
    )

    yield

    logger.info("Shutting down ThreadPilot-AI Server...")
    await execution_logger.aclose()
    await close_collaborators(collaborators)
    logger.info(
        f"Execution log closed: written={execution_logger.written_count} "
        f"dropped={execution_logger.dropped_count} failed={execution_logger.failed_count}"
    )


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    ThreadPilot-AI Server API

    Capability dispatcher for the ThreadPilot conversational assistant. It validates,
    authorizes, executes and audits capability calls (search, summarization, extraction,
    categorization and scheduling) against conversation threads.
    """,
    version=constant.API_VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

initialize_logfire(app)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LogfireMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(capabilities.router, prefix=f"{constant.API_V1_STR}/capabilities", tags=["capabilities"])
app.include_router(executions.router, prefix=f"{constant.API_V1_STR}/executions", tags=["executions"])
