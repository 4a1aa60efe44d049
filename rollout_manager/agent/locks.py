"""
Per-target locking for the agent endpoint.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from rollout_manager.models import DeploymentTarget


class TargetLocks:
    """One asyncio.Lock per (app, tag); different targets never block each other."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, target: DeploymentTarget) -> asyncio.Lock:
        # No await between lookup and insert
        return self._locks.setdefault(target.key, asyncio.Lock())

    @asynccontextmanager
    async def hold(self, target: DeploymentTarget) -> AsyncIterator[None]:
        async with self.get(target):
            yield

    def is_locked(self, target: DeploymentTarget) -> bool:
        lock = self._locks.get(target.key)
        return lock is not None and lock.locked()
