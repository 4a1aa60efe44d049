"""
Agent endpoint process: wires the slot store, runtime, engine and API
together and serves them with uvicorn.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from rollout_manager.agent import AgentService
from rollout_manager.api import create_app
from rollout_manager.config import AgentSettings
from rollout_manager.engine import ApplyEngine
from rollout_manager.runtime import ComposeRuntime, ContainerRuntime
from rollout_manager.slots import SlotStore

logger = logging.getLogger(__name__)


def build_agent_app(
    settings: AgentSettings, runtime: Optional[ContainerRuntime] = None
) -> FastAPI:
    """
    Build the agent API from settings.

    Raises:
        ConfigurationError: If no access token is configured
    """
    access_token = settings.require_access_token()
    apps_root = settings.resolved_apps_root()
    apps_root.mkdir(parents=True, exist_ok=True)

    store = SlotStore(apps_root)
    engine = ApplyEngine(store, runtime or ComposeRuntime())
    logger.info(f"Agent storing slots under {apps_root}")
    return create_app(AgentService(engine), access_token)


async def serve_agent(settings: AgentSettings) -> None:
    """Run the agent endpoint until interrupted."""
    app = build_agent_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)

    logger.info(f"Starting agent endpoint on {settings.host}:{settings.port}")
    await server.serve()
