"""
On-disk storage of deployment slots.

Each (app, tag) target owns a directory under the storage root holding the
live configuration and a single backup generation:

    <root>/<app>/<tag>/docker-compose.yml         live compose file
    <root>/<app>/<tag>/.env                        live env file (optional)
    <root>/<app>/<tag>/docker-compose.backup.yml   previous compose file
    <root>/<app>/<tag>/.env.backup                 previous env file (optional)
"""

import logging
import os
from pathlib import Path
from typing import Optional

import aiofiles  # type: ignore

from rollout_manager.errors import SlotStorageError
from rollout_manager.logging_config import log_slot_operation
from rollout_manager.models import ConfigurationBundle, DeploymentTarget

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.yml"
ENV_FILE = ".env"
BACKUP_COMPOSE_FILE = "docker-compose.backup.yml"
BACKUP_ENV_FILE = ".env.backup"


class SlotStore:
    """
    Reads and writes the two retained generations of each deployment slot.

    The store performs no locking; callers serialize access per target.
    """

    def __init__(self, root: Path) -> None:
        """
        Initialize the slot store.

        Args:
            root: Directory under which every slot directory is created
        """
        self.root = Path(root)

    def resolve_slot_path(self, target: DeploymentTarget) -> Path:
        """Return the slot directory for a target, creating it if missing."""
        path = self.root / target.app / target.tag
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SlotStorageError(f"Cannot create slot directory {path}: {e}")
        return path

    async def read_current(self, target: DeploymentTarget) -> Optional[ConfigurationBundle]:
        """Live generation, or None if the target was never deployed."""
        slot = self.resolve_slot_path(target)
        return await self._read_bundle(slot / COMPOSE_FILE, slot / ENV_FILE)

    async def read_backup(self, target: DeploymentTarget) -> Optional[ConfigurationBundle]:
        """Backup generation, or None if none is retained."""
        slot = self.resolve_slot_path(target)
        return await self._read_bundle(slot / BACKUP_COMPOSE_FILE, slot / BACKUP_ENV_FILE)

    async def write_current(self, target: DeploymentTarget, bundle: ConfigurationBundle) -> None:
        """
        Overwrite the live generation with a newly deployed one.

        The env file is only replaced when the bundle carries env text, so an
        existing env file carries over deploys that omit it.
        """
        slot = self.resolve_slot_path(target)
        await self._write_file(slot / COMPOSE_FILE, bundle.compose)
        if bundle.env is not None:
            await self._write_file(slot / ENV_FILE, bundle.env)
        log_slot_operation("write", target.key, {"env_supplied": bundle.env is not None})

    async def restore_current(self, target: DeploymentTarget, bundle: ConfigurationBundle) -> None:
        """
        Make the live generation exactly equal to a retained one.

        Unlike write_current, a bundle without env removes the live env file.
        """
        slot = self.resolve_slot_path(target)
        await self._mirror(bundle, slot / COMPOSE_FILE, slot / ENV_FILE)
        log_slot_operation("restore_write", target.key, {"env": bundle.env is not None})

    async def snapshot_backup(self, target: DeploymentTarget) -> bool:
        """
        Copy the live generation into the backup files.

        Must run before write_current. A first deploy has nothing to back up,
        which is not an error.

        Returns:
            True if a backup was written, False if there was no live generation
        """
        current = await self.read_current(target)
        if current is None:
            logger.debug(f"No current generation for {target.key}, skipping backup")
            return False

        slot = self.resolve_slot_path(target)
        await self._mirror(current, slot / BACKUP_COMPOSE_FILE, slot / BACKUP_ENV_FILE)
        log_slot_operation("backup", target.key)
        return True

    async def _mirror(
        self, bundle: ConfigurationBundle, compose_path: Path, env_path: Path
    ) -> None:
        # Env goes first: an interrupted mirror never pairs the new compose
        # file with the previous env file.
        if bundle.env is not None:
            await self._write_file(env_path, bundle.env)
        else:
            self._remove_file(env_path)
        await self._write_file(compose_path, bundle.compose)

    @staticmethod
    def _remove_file(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise SlotStorageError(f"Failed to remove {path}: {e}")

    async def _read_bundle(
        self, compose_path: Path, env_path: Path
    ) -> Optional[ConfigurationBundle]:
        if not compose_path.exists():
            return None
        try:
            async with aiofiles.open(compose_path, "r") as f:
                compose = await f.read()
            env: Optional[str] = None
            if env_path.exists():
                async with aiofiles.open(env_path, "r") as f:
                    env = await f.read()
        except OSError as e:
            raise SlotStorageError(f"Failed to read {compose_path.parent}: {e}")
        return ConfigurationBundle(compose=compose, env=env)

    async def _write_file(self, path: Path, content: str) -> None:
        # Write to temp file first, then move atomically
        temp_file = path.with_name(path.name + ".tmp")
        try:
            async with aiofiles.open(temp_file, "w") as f:
                await f.write(content)
                await f.flush()
                os.fsync(f.fileno())
            temp_file.replace(path)
        except OSError as e:
            raise SlotStorageError(f"Failed to write {path}: {e}")
