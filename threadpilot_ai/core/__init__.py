"""
Core utilities and configuration for ThreadPilot-AI.

This package provides core functionality including logging configuration
and monitoring hooks shared by the server and the capability runtime.
"""

from threadpilot_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
