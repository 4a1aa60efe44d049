"""
HTTP client for agent endpoints, used by the fleet orchestrator.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from rollout_manager.errors import AgentRequestError, AuthorizationError, NetworkError
from rollout_manager.models import AgentNode, AgentResponse, DeploymentTarget, DeployRequest
from rollout_manager.utils.log_sanitizer import sanitize_url

logger = logging.getLogger(__name__)


class AgentClient:
    """Calls the deploy, rollback and health endpoints of one agent."""

    def __init__(
        self,
        node: AgentNode,
        timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            node: Agent URL and bearer credential
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport, used in tests
        """
        self.node = node
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.node.base_url,
            headers={"Authorization": f"Bearer {self.node.access_token}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> AgentResponse:
        url = sanitize_url(self.node.base_url + path)
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise NetworkError(sanitize_url(self.node.base_url), str(e) or type(e).__name__)

        try:
            decoded = response.json()
        except ValueError:
            decoded = None
        data: Dict[str, Any] = decoded if isinstance(decoded, dict) else {}

        if response.status_code == 401:
            raise AuthorizationError(f"Agent {url} rejected the access token")
        if response.status_code >= 400:
            message = data.get("error") or f"Agent {url} returned HTTP {response.status_code}"
            raise AgentRequestError(message, response.status_code, data or None)

        return AgentResponse(
            success=bool(data.get("success", False)),
            state=data.get("state"),
            error=data.get("error"),
            status_code=response.status_code,
        )

    async def deploy(self, request: DeployRequest) -> AgentResponse:
        """POST /deploy."""
        return await self._request(
            "POST", "/deploy", json=request.model_dump(exclude_none=True)
        )

    async def rollback(self, target: DeploymentTarget) -> AgentResponse:
        """POST /rollback."""
        return await self._request("POST", "/rollback", json={"app": target.app, "tag": target.tag})

    async def health(self) -> bool:
        """GET /health; False when the agent cannot be reached or is unhealthy."""
        try:
            response = await self._request("GET", "/health")
        except (NetworkError, AgentRequestError, AuthorizationError):
            return False
        return response.success
