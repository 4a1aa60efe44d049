"""
Agent-side deploy and rollback operations.

Wraps the apply engine with per-target serialization, so two requests for
the same slot never interleave their backup and write steps.
"""

import logging
from typing import Optional

from rollout_manager.agent.locks import TargetLocks
from rollout_manager.engine import ApplyEngine, ApplyOptions
from rollout_manager.models import ApplyResult, DeploymentTarget, DeployRequest

logger = logging.getLogger(__name__)


class AgentService:
    """Deploy and rollback operations exposed by the agent endpoint."""

    def __init__(self, engine: ApplyEngine, locks: Optional[TargetLocks] = None) -> None:
        self.engine = engine
        self.locks = locks or TargetLocks()

    async def deploy(self, request: DeployRequest) -> ApplyResult:
        """Apply a new generation with backup and rollback enabled."""
        target = request.target
        async with self.locks.hold(target):
            logger.info(f"Deploying {target.key}")
            result = await self.engine.apply_new(target, request.bundle, ApplyOptions())
        logger.info(f"Deploy of {target.key} finished: {result.state.value}")
        return result

    async def rollback(self, target: DeploymentTarget) -> ApplyResult:
        """
        Make the backup generation live.

        Raises:
            NoBackupAvailable: If the target has no backup generation
        """
        async with self.locks.hold(target):
            logger.info(f"Rolling back {target.key}")
            result = await self.engine.restore_previous(target)
        logger.info(f"Rollback of {target.key} finished: {result.state.value}")
        return result
