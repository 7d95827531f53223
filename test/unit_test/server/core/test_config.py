"""
Unit tests for the server settings model.
"""

import json

import pytest

from threadpilot_ai.capability_core.schemas.config import DispatchConfig
from threadpilot_ai.capability_core.schemas.domain import CapabilityName
from threadpilot_ai.server.core.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("THREADPILOT_AI_"):
            monkeypatch.delenv(key)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings(_env_file=None)

    assert settings.caller_header == "X-Authenticated-User"
    assert settings.collaborator_mode == "memory"
    assert settings.dispatch.deadline_seconds == 2.0
    assert settings.execution_log.database_url is None


def test_environment_overrides(clean_env):
    clean_env.setenv("THREADPILOT_AI_DEADLINE_SECONDS", "3.5")
    clean_env.setenv("THREADPILOT_AI_CAPABILITY_DEADLINES", json.dumps({"suggestMeetingTimes": 5}))
    clean_env.setenv("THREADPILOT_AI_COLLABORATOR_MODE", "http")
    clean_env.setenv("THREADPILOT_AI_EXECUTION_LOG_DATABASE_URL", "sqlite:///./exec.db")

    settings = Settings(_env_file=None)

    assert settings.dispatch.deadline_seconds == 3.5
    assert settings.dispatch.capability_deadlines == {CapabilityName.suggest_meeting_times: 5.0}
    assert settings.dispatch.deadline_for("suggestMeetingTimes") == 5.0
    assert settings.dispatch.deadline_for(CapabilityName.search_messages) == 3.5
    assert settings.collaborators.mode == "http"
    assert settings.execution_log.database_url == "sqlite:///./exec.db"


def test_unknown_collaborator_mode_is_rejected(clean_env):
    clean_env.setenv("THREADPILOT_AI_COLLABORATOR_MODE", "carrier-pigeon")

    with pytest.raises(ValueError):
        Settings(_env_file=None)


@pytest.mark.parametrize(
    "overrides",
    [{"searchMessages": 0}, {"searchMessages": -1.0}, {"serchMessages": 1.0}],
)
def test_bad_capability_deadline_is_rejected_at_boot(clean_env, overrides):
    clean_env.setenv("THREADPILOT_AI_CAPABILITY_DEADLINES", json.dumps(overrides))

    with pytest.raises(ValueError):
        Settings(_env_file=None)


@pytest.mark.parametrize(
    "overrides",
    [{"searchMessages": 0}, {"serchMessages": 1.0}],
)
def test_dispatch_config_rejects_bad_overrides(overrides):
    with pytest.raises(ValueError):
        DispatchConfig(capability_deadlines=overrides)
