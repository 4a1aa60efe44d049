"""
Shared dependencies for agent routes.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

from rollout_manager.agent import AgentService
from rollout_manager.errors import AuthorizationError

logger = logging.getLogger(__name__)


def get_agent_service(request: Request) -> AgentService:
    """
    Get the agent service from app state.

    Raises:
        HTTPException: If the service was not attached to the app
    """
    if not hasattr(request.app.state, "agent_service"):
        raise HTTPException(status_code=500, detail="Agent service not initialized")
    return request.app.state.agent_service  # type: ignore[no-any-return]


async def require_access_token(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    """
    Verify the shared bearer token.

    Args:
        request: FastAPI request object
        authorization: Bearer token from Authorization header

    Raises:
        AuthorizationError: If the token is missing, malformed or wrong
    """
    expected: str = request.app.state.access_token

    if not authorization:
        raise AuthorizationError("Missing authorization header")

    # Extract token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthorizationError("Invalid authorization format")

    if not secrets.compare_digest(parts[1].encode(), expected.encode()):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected request to {request.url.path} from {client}: invalid token")
        raise AuthorizationError("Unauthorized")
