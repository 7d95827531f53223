"""
Unit tests for server exception handlers.

Tests cover the JSON body of the global handler, what it logs, and its
registration on an application.
"""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient

from threadpilot_ai.server.exception_handlers import setup_exception_handlers
from threadpilot_ai.server.exception_handlers.global_handler import global_exception_handler


class TestGlobalExceptionHandler:
    """Test suite for global exception handler."""

    @pytest.fixture
    def mock_request(self):
        """Create a mock request object."""
        request = Mock(spec=Request)
        request.method = "POST"
        request.url.path = "/api/v1/capabilities/execute"
        request.client = Mock()
        request.client.host = "127.0.0.1"
        return request

    @pytest.mark.asyncio
    async def test_exception_handler_logs_error(self, mock_request):
        exc = ValueError("Test error")

        with patch("threadpilot_ai.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, exc)

        call_args = mock_logger.error.call_args
        assert "Unhandled exception" in call_args[0][0]
        assert call_args[1]["extra"]["error_type"] == "ValueError"
        assert call_args[1]["extra"]["error_id"] == id(exc)

    @pytest.mark.asyncio
    async def test_exception_handler_returns_json_500(self, mock_request):
        exc = RuntimeError("database password is hunter2")

        with patch("threadpilot_ai.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        body = json.loads(response.body)
        assert body == {"detail": "Internal server error", "error_id": id(exc), "error_type": "RuntimeError"}
        assert "hunter2" not in response.body.decode()

    @pytest.mark.asyncio
    async def test_handler_without_client(self, mock_request):
        mock_request.client = None

        with patch("threadpilot_ai.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, KeyError("x"))

        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"


class TestSetupExceptionHandlers:
    def test_registers_global_handler(self):
        app = FastAPI()

        setup_exception_handlers(app)

        assert app.exception_handlers[Exception] is global_exception_handler

    @pytest.mark.asyncio
    async def test_unhandled_route_error_becomes_json(self):
        app = FastAPI()
        setup_exception_handlers(app)

        @app.get("/explode")
        async def explode():
            raise LookupError("nope")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://mock") as client:
            response = await client.get("/explode")

        assert response.status_code == 500
        assert response.json()["error_type"] == "LookupError"
