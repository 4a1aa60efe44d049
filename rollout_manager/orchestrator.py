"""
Fleet orchestrator.

Rolls a deploy request out to agents one at a time, in a fixed order. When a
node fails, every node that already succeeded is rolled back, most recent
first, and the rollout is reported as failed. At most one node is ever
running a bad release at a time.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from rollout_manager.audit import AuditLog
from rollout_manager.client import AgentClient
from rollout_manager.models import (
    AgentNode,
    DeploymentTarget,
    DeployRequest,
    NodeOutcome,
    RolloutResult,
)
from rollout_manager.utils.log_sanitizer import sanitize_url

logger = logging.getLogger(__name__)

ClientFactory = Callable[[AgentNode], AgentClient]


@dataclass
class RolloutRun:
    """In-memory progress of one rollout; discarded when it terminates."""

    nodes: List[AgentNode]
    cursor: int = 0
    succeeded: List[AgentNode] = field(default_factory=list)


class FleetOrchestrator:
    """Drives deploys and rollbacks across a list of agents."""

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        audit_log: Optional[AuditLog] = None,
        request_timeout: float = 600.0,
    ) -> None:
        """
        Args:
            client_factory: Builds the client used to talk to a node
            audit_log: Where rollout actions are recorded
            request_timeout: Per-request timeout for the default client
        """
        self.client_factory = client_factory or (
            lambda node: AgentClient(node, timeout=request_timeout)
        )
        self.audit = audit_log or AuditLog()

    @classmethod
    def with_audit_file(cls, path: str, request_timeout: float = 600.0) -> "FleetOrchestrator":
        return cls(audit_log=AuditLog(Path(path)), request_timeout=request_timeout)

    async def rollout(self, nodes: Sequence[AgentNode], request: DeployRequest) -> RolloutResult:
        """
        Deploy to every node in order, compensating on the first failure.

        Args:
            nodes: Agents, in rollout order
            request: Deploy request sent unchanged to each agent

        Returns:
            RolloutResult; success only if every node deployed
        """
        if not nodes:
            raise ValueError("A rollout needs at least one node")

        run = RolloutRun(nodes=list(nodes))
        rollout_id = str(uuid4())
        target = request.target

        logger.info(f"Rollout {rollout_id[:8]} of {target.key} to {len(run.nodes)} nodes")
        self.audit.record(
            "rollout_started",
            rollout_id,
            details={"target": target.key, "nodes": [sanitize_url(n.url) for n in run.nodes]},
        )

        for run.cursor, node in enumerate(run.nodes):
            url = sanitize_url(node.url)
            error = await self._deploy_node(node, request)

            if error is None:
                run.succeeded.append(node)
                logger.info(f"[{run.cursor + 1}/{len(run.nodes)}] {url} deployed {target.key}")
                self.audit.record("node_deployed", rollout_id, node=url, success=True)
                continue

            logger.error(f"[{run.cursor + 1}/{len(run.nodes)}] {url} failed: {error}")
            self.audit.record(
                "node_failed", rollout_id, node=url, success=False, details={"error": error}
            )
            compensations = await self._compensate(run, target, rollout_id)
            result = RolloutResult(
                rollout_id=rollout_id,
                app=target.app,
                tag=target.tag,
                success=False,
                failed_node=url,
                error=error,
                succeeded_nodes=[sanitize_url(n.url) for n in run.succeeded],
                compensations=compensations,
            )
            self._finish(result)
            return result

        result = RolloutResult(
            rollout_id=rollout_id,
            app=target.app,
            tag=target.tag,
            success=True,
            succeeded_nodes=[sanitize_url(n.url) for n in run.succeeded],
        )
        self._finish(result)
        return result

    async def rollback_fleet(
        self, nodes: Sequence[AgentNode], target: DeploymentTarget
    ) -> List[NodeOutcome]:
        """
        Ask every node to restore its backup generation of a target.

        A failing node does not stop the remaining ones.
        """
        outcomes = []
        for node in nodes:
            outcome = await self._rollback_node(node, target)
            outcomes.append(outcome)
            if not outcome.success:
                logger.error(f"Rollback of {target.key} on {outcome.node} failed: {outcome.error}")
        return outcomes

    async def check_health(self, nodes: Sequence[AgentNode]) -> Dict[str, bool]:
        """Call GET /health on each node."""
        return {sanitize_url(node.url): await self.client_factory(node).health() for node in nodes}

    async def _deploy_node(self, node: AgentNode, request: DeployRequest) -> Optional[str]:
        """Deploy to one node; returns an error message, or None on success."""
        try:
            response = await self.client_factory(node).deploy(request)
        except Exception as e:
            # Unreachable agents count as failed deploys
            return str(e) or type(e).__name__
        if not response.success:
            return response.error or "Agent reported failure"
        return None

    async def _rollback_node(self, node: AgentNode, target: DeploymentTarget) -> NodeOutcome:
        url = sanitize_url(node.url)
        try:
            response = await self.client_factory(node).rollback(target)
        except Exception as e:
            return NodeOutcome(node=url, success=False, error=str(e) or type(e).__name__)
        if not response.success:
            error = response.error or "Agent reported failure"
            return NodeOutcome(node=url, success=False, error=error)
        return NodeOutcome(node=url, success=True)

    async def _compensate(
        self, run: RolloutRun, target: DeploymentTarget, rollout_id: str
    ) -> List[NodeOutcome]:
        """Roll back succeeded nodes in reverse order of success."""
        if run.succeeded:
            logger.warning(
                f"Compensating {len(run.succeeded)} node(s) for rollout {rollout_id[:8]}"
            )

        outcomes = []
        for node in reversed(run.succeeded):
            outcome = await self._rollback_node(node, target)
            outcomes.append(outcome)
            self.audit.record(
                "compensated",
                rollout_id,
                node=outcome.node,
                success=outcome.success,
                details={"error": outcome.error} if outcome.error else None,
            )
            if outcome.success:
                logger.info(f"Rolled back {target.key} on {outcome.node}")
            else:
                logger.error(
                    f"Compensation of {target.key} on {outcome.node} failed: {outcome.error}"
                )
        return outcomes

    def _finish(self, result: RolloutResult) -> None:
        if result.success:
            logger.info(f"Rollout {result.rollout_id[:8]} of {result.app}:{result.tag} succeeded")
        elif result.fully_compensated:
            logger.error(
                f"Rollout {result.rollout_id[:8]} failed at {result.failed_node}; "
                f"{len(result.compensations)} node(s) rolled back"
            )
        else:
            failed = [c.node for c in result.compensations if not c.success]
            logger.error(
                f"Rollout {result.rollout_id[:8]} failed at {result.failed_node}; "
                f"compensation failed on {failed}, manual intervention required"
            )
        self.audit.record(
            "rollout_finished", result.rollout_id, success=result.success, details=result.summary()
        )
