"""
Unit tests for the logging configuration module.
"""

import logging

import pytest

from threadpilot_ai.core import logging_config
from threadpilot_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_handlers():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize("fmt,expected", [("json", JSON_FORMAT), ("simple", SIMPLE_FORMAT), ("detailed", DETAILED_FORMAT), ("other", DETAILED_FORMAT)])
def test_format_selection(fmt, expected):
    assert logging_config._format_string(fmt) == expected


def test_setup_replaces_root_handlers():
    root = logging.getLogger()
    root.addHandler(logging.NullHandler())

    setup_logging(log_level="warning", log_format="simple", enable_file=False)

    assert len(root.handlers) == 1
    [handler] = root.handlers
    assert handler.level == logging.WARNING
    assert handler.formatter._fmt == SIMPLE_FORMAT


def test_module_levels_are_applied():
    setup_logging(enable_file=False)

    for name, level in MODULE_LOG_LEVELS.items():
        assert logging.getLogger(name).level == logging.getLevelName(level)


def test_file_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(logging_config, "ENABLE_FILE_LOGGING", True)
    monkeypatch.setattr(logging_config, "LOG_FILE_DIR", str(tmp_path / "logs"))

    setup_logging(log_level="INFO")

    file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert (tmp_path / "logs" / "threadpilot_ai.log").exists()
    for h in file_handlers:
        h.close()


def test_get_logger():
    assert get_logger("threadpilot_ai.test") is logging.getLogger("threadpilot_ai.test")
