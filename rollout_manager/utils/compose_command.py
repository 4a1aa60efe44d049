"""
Detect which docker compose command is available on this host.

Supports both Docker Compose v2 (docker compose) and v1 (docker-compose).
"""

import asyncio
import logging
import shutil
from typing import List, Optional

from rollout_manager.errors import ComposeNotFoundError

logger = logging.getLogger(__name__)

# Detected once per process
_compose_command: Optional[List[str]] = None


def reset_compose_command_cache() -> None:
    """Forget the detected compose command."""
    global _compose_command
    _compose_command = None


async def get_compose_command() -> List[str]:
    """
    Get the docker compose command for this system.

    Returns:
        ["docker", "compose"] for v2, ["docker-compose"] for v1

    Raises:
        ComposeNotFoundError: If neither is available
    """
    global _compose_command

    if _compose_command is not None:
        return _compose_command

    v2_error: Optional[str] = None

    try:
        process = await asyncio.create_subprocess_exec(
            "docker",
            "compose",
            "version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=5)
        if process.returncode == 0:
            _compose_command = ["docker", "compose"]
            logger.info("Using Docker Compose v2 (docker compose)")
            return _compose_command
        v2_error = f"Command returned exit code {process.returncode}"
        if stderr:
            v2_error += f": {stderr.decode().strip()}"
    except asyncio.TimeoutError:
        v2_error = "Command timed out after 5 seconds"
    except FileNotFoundError:
        v2_error = "Docker binary not found in PATH"

    if shutil.which("docker-compose"):
        _compose_command = ["docker-compose"]
        logger.info("Using Docker Compose v1 (docker-compose)")
        return _compose_command

    raise ComposeNotFoundError(v2_error=v2_error)


async def compose_cmd(*args: str) -> List[str]:
    """
    Build a compose command with the given arguments.

    Example:
        await compose_cmd("-f", "docker-compose.yml", "up", "-d")
        -> ["docker", "compose", "-f", "docker-compose.yml", "up", "-d"]
    """
    command = await get_compose_command()
    return command + list(args)
