"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from rollout_manager.config import RolloutManagerConfig
from rollout_manager.errors import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        yaml.dump(
            {
                "agent": {"port": 4000, "access_token": "from-file", "identity": "shop"},
                "rollout": {
                    "access_token": "from-file",
                    "environments": {
                        "staging": {
                            "agent_urls": ["http://a:3740", "http://b:3740"],
                            "compose_file": "./compose.staging.yml",
                        }
                    },
                },
            }
        )
    )
    return path


class TestLoad:
    """Loading from YAML and the environment."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = RolloutManagerConfig.from_file(str(tmp_path / "absent.yml"))

        assert config.agent.port == 3740
        assert config.agent.access_token is None
        assert config.agent.resolved_apps_root() == Path("/opt/apps/apps")

    def test_values_from_file(self, config_file):
        config = RolloutManagerConfig.from_file(str(config_file))

        assert config.agent.port == 4000
        assert config.agent.resolved_apps_root() == Path("/opt/shop/apps")
        staging = config.rollout.environment("staging")
        assert staging.agent_urls == ["http://a:3740", "http://b:3740"]

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("ACCESS_TOKEN", "from-env")
        monkeypatch.setenv("APPS_ROOT", "/srv/slots")
        monkeypatch.setenv("AGENT_PORT", "5000")

        config = RolloutManagerConfig.from_file(str(config_file))

        assert config.agent.access_token == "from-env"
        assert config.rollout.access_token == "from-env"
        assert config.agent.resolved_apps_root() == Path("/srv/slots")
        assert config.agent.port == 5000

    def test_bad_port(self, config_file, monkeypatch):
        monkeypatch.setenv("AGENT_PORT", "not-a-port")
        with pytest.raises(ConfigurationError):
            RolloutManagerConfig.from_file(str(config_file))


class TestAccessors:
    """Required settings."""

    def test_missing_agent_token(self):
        with pytest.raises(ConfigurationError):
            RolloutManagerConfig().agent.require_access_token()

    def test_missing_rollout_token(self):
        with pytest.raises(ConfigurationError):
            RolloutManagerConfig().rollout.require_access_token()

    def test_unknown_environment(self, config_file):
        config = RolloutManagerConfig.from_file(str(config_file))
        with pytest.raises(ConfigurationError):
            config.rollout.environment("qa")

    def test_unconfigured_environment(self, config_file):
        config = RolloutManagerConfig.from_file(str(config_file))
        with pytest.raises(ConfigurationError):
            config.rollout.environment("production")


class TestSave:
    """Writing configuration back out."""

    def test_save_omits_secrets(self, config_file, tmp_path):
        config = RolloutManagerConfig.from_file(str(config_file))
        out = tmp_path / "out" / "config.yml"

        config.save(str(out))

        text = out.read_text()
        assert "from-file" not in text
        data = yaml.safe_load(text)
        assert data["agent"]["port"] == 4000
        assert data["rollout"]["environments"]["staging"]["agent_urls"] == [
            "http://a:3740",
            "http://b:3740",
        ]

    def test_token_not_in_repr(self, config_file):
        config = RolloutManagerConfig.from_file(str(config_file))
        assert "from-file" not in repr(config)
