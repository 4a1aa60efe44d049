"""
Pytest configuration and fixtures for rollout-manager tests.
"""

import pytest

from rollout_manager.utils.compose_command import reset_compose_command_cache

OVERRIDE_VARIABLES = ["ACCESS_TOKEN", "APPS_ROOT", "AGENT_IDENTITY", "AGENT_HOST", "AGENT_PORT"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host's environment overrides out of configuration tests."""
    for name in OVERRIDE_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_compose_cache():
    """Compose detection is cached per process; start each test undetected."""
    reset_compose_command_cache()
    yield
    reset_compose_command_cache()
