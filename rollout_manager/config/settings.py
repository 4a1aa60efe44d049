"""
Configuration settings for rollout-manager.

Settings are read from a YAML file and then overridden by environment
variables, so the agent's secret and storage root can be supplied by the
service manager without editing the file.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from rollout_manager.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "/etc/rollout-manager/config.yml"


class DeployEnvironment(str, Enum):
    """Named environments a rollout can target."""

    STAGING = "staging"
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class AgentSettings(BaseModel):
    """Settings for the agent endpoint process."""

    host: str = Field(default="0.0.0.0", description="Address the agent binds to")
    port: int = Field(default=3740, description="Port the agent listens on")
    access_token: Optional[str] = Field(
        default=None, description="Shared bearer secret required on every call", repr=False
    )
    identity: str = Field(default="apps", description="Identity used to derive the default root")
    apps_root: Optional[str] = Field(default=None, description="Root directory for slots")

    def resolved_apps_root(self) -> Path:
        """Storage root, derived from the identity when not set explicitly."""
        if self.apps_root:
            return Path(self.apps_root)
        return Path("/opt") / self.identity / "apps"

    def require_access_token(self) -> str:
        if not self.access_token:
            raise ConfigurationError(
                "agent.access_token is not configured. Set it in the config file "
                "or through the ACCESS_TOKEN environment variable."
            )
        return self.access_token


class EnvironmentSettings(BaseModel):
    """What a rollout to one environment sends, and to whom."""

    agent_urls: List[str] = Field(default_factory=list)
    compose_file: str = Field(default="./docker-compose.yml")
    env_files: List[str] = Field(default_factory=list)


class RolloutSettings(BaseModel):
    """Settings for the fleet orchestrator."""

    access_token: Optional[str] = Field(default=None, repr=False)
    request_timeout: float = Field(default=600.0, description="Per-request timeout in seconds")
    audit_log: str = Field(
        default=str(Path.home() / ".local" / "state" / "rollout-manager" / "audit.jsonl")
    )
    environments: Dict[DeployEnvironment, EnvironmentSettings] = Field(default_factory=dict)

    def environment(self, name: str) -> EnvironmentSettings:
        try:
            env = DeployEnvironment(name)
        except ValueError:
            raise ConfigurationError(f"Unknown environment: {name}")
        settings = self.environments.get(env)
        if settings is None or not settings.agent_urls:
            raise ConfigurationError(f"No agent_urls configured for environment '{name}'")
        return settings

    def require_access_token(self) -> str:
        if not self.access_token:
            raise ConfigurationError(
                "rollout.access_token is not configured. Set it in the config file "
                "or through the ACCESS_TOKEN environment variable."
            )
        return self.access_token


class LoggingSettings(BaseModel):
    """Logging configuration."""

    directory: str = Field(default="/var/log/rollout-manager")
    console_level: str = Field(default="INFO")
    file_level: str = Field(default="DEBUG")
    use_json: bool = Field(default=False)


class RolloutManagerConfig(BaseModel):
    """Complete rollout-manager configuration."""

    agent: AgentSettings = Field(default_factory=AgentSettings)
    rollout: RolloutSettings = Field(default_factory=RolloutSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_file(cls, path: str) -> "RolloutManagerConfig":
        """Load configuration from YAML, then apply environment overrides."""
        config_path = Path(path)
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            config = cls(**data)
        else:
            config = cls()
        config.apply_env_overrides()
        return config

    def apply_env_overrides(self) -> None:
        """Environment variables take precedence over file values."""
        token = os.getenv("ACCESS_TOKEN")
        if token:
            self.agent.access_token = token
            self.rollout.access_token = token

        if os.getenv("APPS_ROOT"):
            self.agent.apps_root = os.environ["APPS_ROOT"]
        if os.getenv("AGENT_IDENTITY"):
            self.agent.identity = os.environ["AGENT_IDENTITY"]
        if os.getenv("AGENT_HOST"):
            self.agent.host = os.environ["AGENT_HOST"]
        if os.getenv("AGENT_PORT"):
            try:
                self.agent.port = int(os.environ["AGENT_PORT"])
            except ValueError:
                raise ConfigurationError(f"Invalid AGENT_PORT: {os.environ['AGENT_PORT']}")

    def save(self, path: str) -> None:
        """Write configuration to a YAML file, omitting secrets."""
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        secrets = {"agent": {"access_token"}, "rollout": {"access_token"}}
        data = self.model_dump(mode="json", exclude=secrets)
        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
