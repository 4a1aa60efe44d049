"""
Container runtime operations for deployment slots.

The apply engine only needs two steps from the runtime: fetch the images a
slot's compose file references, and replace the running containers with the
ones the compose file declares.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import List, Protocol, Type

from rollout_manager.errors import (
    BringUpError,
    ComposeNotFoundError,
    ImagePullError,
    RuntimeStepError,
)
from rollout_manager.slots.store import COMPOSE_FILE
from rollout_manager.utils.compose_command import compose_cmd
from rollout_manager.utils.shell import run_command

logger = logging.getLogger(__name__)


class ContainerRuntime(Protocol):
    """Runtime steps invoked by the apply engine."""

    async def pull(self, slot_dir: Path) -> None:
        """Fetch images; raises ImagePullError."""
        ...

    async def up(self, slot_dir: Path) -> None:
        """Make the slot's configuration live; raises BringUpError."""
        ...


class ComposeRuntime:
    """Runs docker compose in a slot directory."""

    def __init__(self, project_prefix: str = "") -> None:
        """
        Args:
            project_prefix: Optional prefix for compose project names
        """
        self.project_prefix = project_prefix

    def project_name(self, slot_dir: Path) -> str:
        """
        Compose project name for the slot at <root>/<app>/<tag>.

        Compose names are lowercase, so the readable part alone can collide
        (Shop/v1 and shop/v1, aa-bb/cc and aa/bb-cc). A digest of the exact
        app and tag keeps every slot in its own project.
        """
        app, tag = slot_dir.parent.name, slot_dir.name
        readable = re.sub(r"[^a-z0-9_-]", "-", f"{app}-{tag}".lower())
        digest = hashlib.sha256(f"{app}\0{tag}".encode()).hexdigest()[:10]
        return f"{self.project_prefix}{readable}-{digest}"

    async def _command(
        self, slot_dir: Path, error_cls: Type[RuntimeStepError], *args: str
    ) -> List[str]:
        try:
            return await compose_cmd(
                "-p", self.project_name(slot_dir), "-f", str(slot_dir / COMPOSE_FILE), *args
            )
        except ComposeNotFoundError as e:
            raise error_cls(["docker", "compose", *args], stderr=str(e))

    async def pull(self, slot_dir: Path) -> None:
        cmd = await self._command(slot_dir, ImagePullError, "pull")
        logger.info(f"Pulling images for {slot_dir}")
        await run_command(cmd, cwd=slot_dir, error_cls=ImagePullError)

    async def up(self, slot_dir: Path) -> None:
        cmd = await self._command(slot_dir, BringUpError, "up", "-d", "--remove-orphans")
        logger.info(f"Bringing up {slot_dir}")
        await run_command(cmd, cwd=slot_dir, error_cls=BringUpError)
