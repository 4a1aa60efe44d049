"""
Tests for agent deploy/rollback operations and per-target locking.
"""

import asyncio

import pytest

from rollout_manager.agent import AgentService, TargetLocks
from rollout_manager.errors import NoBackupAvailable
from rollout_manager.models import ApplyState, DeploymentTarget, DeployRequest


def deploy_request(compose, app="shop", tag="prod", env=None):
    return DeployRequest(app=app, tag=tag, compose=compose, env=env)


class SlowRuntime:
    """Runtime whose bring-up blocks until released, recording overlap."""

    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.release = asyncio.Event()

    async def pull(self, slot_dir):
        pass

    async def up(self, slot_dir):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await self.release.wait()
        self.active -= 1


class TestAgentService:
    """Deploy and rollback through the service."""

    @pytest.mark.asyncio
    async def test_deploy_then_rollback(self, agent_service, store, target):
        await agent_service.deploy(deploy_request("A"))
        await agent_service.deploy(deploy_request("B"))

        result = await agent_service.rollback(target)

        assert result.state == ApplyState.SUCCEEDED
        assert (await store.read_current(target)).compose == "A"
        assert (await store.read_backup(target)).compose == "A"

    @pytest.mark.asyncio
    async def test_rollback_without_backup(self, agent_service, store, target):
        await agent_service.deploy(deploy_request("A"))

        with pytest.raises(NoBackupAvailable):
            await agent_service.rollback(target)

        assert (await store.read_current(target)).compose == "A"

    @pytest.mark.asyncio
    async def test_deploy_failure_self_heals(self, agent_service, store, target, runtime):
        await agent_service.deploy(deploy_request("A"))
        runtime.fail_up.add("C")

        result = await agent_service.deploy(deploy_request("C"))

        assert result.state == ApplyState.ROLLED_BACK
        assert (await store.read_current(target)).compose == "A"


class TestTargetLocks:
    """Per-target serialization."""

    def test_same_target_same_lock(self):
        locks = TargetLocks()
        a = locks.get(DeploymentTarget(app="shop", tag="prod"))
        b = locks.get(DeploymentTarget(app="shop", tag="prod"))
        assert a is b

    def test_different_targets_different_locks(self):
        locks = TargetLocks()
        a = locks.get(DeploymentTarget(app="shop", tag="v1"))
        b = locks.get(DeploymentTarget(app="shop", tag="v2"))
        assert a is not b

    @pytest.mark.asyncio
    async def test_same_target_deploys_are_serialized(self, store):
        from rollout_manager.engine import ApplyEngine

        runtime = SlowRuntime()
        service = AgentService(ApplyEngine(store, runtime))

        first = asyncio.create_task(service.deploy(deploy_request("A")))
        second = asyncio.create_task(service.deploy(deploy_request("B")))
        await asyncio.sleep(0.05)

        assert runtime.active == 1
        assert service.locks.is_locked(DeploymentTarget(app="shop", tag="prod"))

        runtime.release.set()
        results = await asyncio.gather(first, second)

        assert all(r.succeeded for r in results)
        assert runtime.max_active == 1
        target = DeploymentTarget(app="shop", tag="prod")
        assert (await store.read_current(target)).compose == "B"
        assert (await store.read_backup(target)).compose == "A"

    @pytest.mark.asyncio
    async def test_different_targets_run_in_parallel(self, store):
        from rollout_manager.engine import ApplyEngine

        runtime = SlowRuntime()
        service = AgentService(ApplyEngine(store, runtime))

        tasks = [
            asyncio.create_task(service.deploy(deploy_request("A", tag="v1"))),
            asyncio.create_task(service.deploy(deploy_request("A", tag="v2"))),
        ]
        await asyncio.sleep(0.05)

        assert runtime.active == 2

        runtime.release.set()
        await asyncio.gather(*tasks)
        assert runtime.max_active == 2
