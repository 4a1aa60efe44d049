"""
Deployment data models for rollout-manager.

These models define deployment targets, configuration bundles, the wire
payloads exchanged between orchestrator and agents, and the results of
apply operations on a single agent.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

IDENTIFIER_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"


class DeploymentTarget(BaseModel):
    """
    Identifies one deployment slot on an agent.

    Both fields are restricted to characters that are safe as a single path
    component, so every (app, tag) pair maps to its own directory.
    """

    app: str = Field(
        ..., min_length=2, max_length=100, pattern=IDENTIFIER_PATTERN, description="App name"
    )
    tag: str = Field(
        ..., min_length=2, max_length=100, pattern=IDENTIFIER_PATTERN, description="Version tag"
    )

    @property
    def key(self) -> str:
        return f"{self.app}:{self.tag}"


class ConfigurationBundle(BaseModel):
    """One generation of slot configuration: compose text plus optional env text."""

    compose: str = Field(..., description="docker compose file contents")
    env: Optional[str] = Field(None, description="Contents of the .env file, if supplied")


class DeployRequest(DeploymentTarget):
    """Payload of POST /deploy."""

    compose: str = Field(..., min_length=1, description="docker compose file contents")
    env: Optional[str] = Field(None, description="Contents of the .env file, if supplied")

    @property
    def target(self) -> DeploymentTarget:
        return DeploymentTarget(app=self.app, tag=self.tag)

    @property
    def bundle(self) -> ConfigurationBundle:
        return ConfigurationBundle(compose=self.compose, env=self.env)


class RollbackRequest(DeploymentTarget):
    """Payload of POST /rollback."""

    @property
    def target(self) -> DeploymentTarget:
        return DeploymentTarget(app=self.app, tag=self.tag)


class ApplyState(str, Enum):
    """Terminal state reached by an apply."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    DOUBLE_FAILED = "double_failed"


class ApplyStage(str, Enum):
    """Step of the apply state machine."""

    BACKING_UP = "backing_up"
    WRITING = "writing"
    PULLING_IMAGES = "pulling_images"
    BRINGING_UP = "bringing_up"
    ROLLING_BACK = "rolling_back"


class ApplyResult(BaseModel):
    """
    Outcome of applying a configuration generation to one slot.

    When a bring-up failure triggered a restore of the previous generation,
    the restore's own result is attached as ``rollback``.
    """

    app: str
    tag: str
    state: ApplyState
    failed_stage: Optional[ApplyStage] = None
    error: Optional[str] = None
    backed_up: bool = False
    rollback: Optional["ApplyResult"] = None

    @property
    def succeeded(self) -> bool:
        return self.state == ApplyState.SUCCEEDED


class AgentResponse(BaseModel):
    """Decoded response of an agent endpoint call."""

    success: bool = False
    state: Optional[ApplyState] = None
    error: Optional[str] = None
    status_code: int = 200


class AgentNode(BaseModel):
    """One agent in a rollout: its base URL and the shared bearer credential."""

    url: str
    access_token: str = Field(..., repr=False)

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


class NodeOutcome(BaseModel):
    """Result of one rollback call to a node."""

    node: str
    success: bool
    error: Optional[str] = None


class RolloutResult(BaseModel):
    """Outcome of a fleet rollout."""

    rollout_id: str
    app: str
    tag: str
    success: bool
    failed_node: Optional[str] = None
    error: Optional[str] = None
    succeeded_nodes: List[str] = Field(default_factory=list)
    compensations: List[NodeOutcome] = Field(default_factory=list)

    @property
    def fully_compensated(self) -> bool:
        """True when every compensating rollback succeeded."""
        return all(c.success for c in self.compensations)

    def summary(self) -> Dict[str, Any]:
        return {
            "rollout_id": self.rollout_id,
            "target": f"{self.app}:{self.tag}",
            "success": self.success,
            "failed_node": self.failed_node,
            "succeeded_nodes": self.succeeded_nodes,
            "compensated": [c.node for c in self.compensations if c.success],
            "compensation_failed": [c.node for c in self.compensations if not c.success],
        }
