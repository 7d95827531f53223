"""
Unit tests for FastAPI application lifespan management.

Tests verify that startup wires the orchestrator and the execution logger onto
``app.state`` and that shutdown flushes the log and closes collaborators.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI

from threadpilot_ai.server.main import lifespan

pytestmark = pytest.mark.asyncio


class TestLifespan:
    async def test_startup_installs_state(self):
        app = FastAPI()

        async with lifespan(app):
            assert len(app.state.orchestrator.registry) == 8
            assert app.state.execution_logger.pending == 0
            assert app.state.collaborators.message_store is not None

    async def test_shutdown_flushes_and_closes(self):
        app = FastAPI()

        with patch("threadpilot_ai.server.main.close_collaborators", new_callable=AsyncMock) as mock_close:
            async with lifespan(app):
                execution_logger = app.state.execution_logger
                execution_logger.aclose = AsyncMock(wraps=execution_logger.aclose)

        execution_logger.aclose.assert_awaited_once()
        mock_close.assert_awaited_once_with(app.state.collaborators)

    async def test_sql_execution_log(self, tmp_path):
        from threadpilot_ai.capability_core.audit.sql import SqlExecutionLogSink
        from threadpilot_ai.server.main import settings

        app = FastAPI()
        with patch.object(settings, "execution_log_database_url", f"sqlite:///{tmp_path / 'exec.db'}"):
            async with lifespan(app):
                assert isinstance(app.state.execution_logger.sink, SqlExecutionLogSink)
