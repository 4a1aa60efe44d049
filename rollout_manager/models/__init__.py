"""
Data models for rollout-manager.
"""

from .deployment import (
    AgentNode,
    AgentResponse,
    ApplyResult,
    ApplyStage,
    ApplyState,
    NodeOutcome,
    ConfigurationBundle,
    DeploymentTarget,
    DeployRequest,
    RollbackRequest,
    RolloutResult,
)

__all__ = [
    "AgentNode",
    "AgentResponse",
    "ApplyResult",
    "ApplyStage",
    "ApplyState",
    "NodeOutcome",
    "ConfigurationBundle",
    "DeploymentTarget",
    "DeployRequest",
    "RollbackRequest",
    "RolloutResult",
]
