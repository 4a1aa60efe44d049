"""
Configuration for rollout-manager.
"""

from .settings import (
    AgentSettings,
    DeployEnvironment,
    EnvironmentSettings,
    LoggingSettings,
    RolloutManagerConfig,
    RolloutSettings,
)

__all__ = [
    "AgentSettings",
    "DeployEnvironment",
    "EnvironmentSettings",
    "LoggingSettings",
    "RolloutManagerConfig",
    "RolloutSettings",
]
