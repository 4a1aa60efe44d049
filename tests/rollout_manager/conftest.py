"""
Shared fixtures for rollout-manager tests.
"""

from pathlib import Path
from typing import Dict, List, Set

import pytest

from rollout_manager.agent import AgentService
from rollout_manager.engine import ApplyEngine
from rollout_manager.errors import BringUpError, ImagePullError
from rollout_manager.models import DeploymentTarget
from rollout_manager.slots import SlotStore
from rollout_manager.slots.store import COMPOSE_FILE


class FakeRuntime:
    """
    Stands in for docker compose.

    Failures are keyed on the compose text currently written to the slot, so
    a test can make one generation fail while another comes up fine.
    """

    def __init__(self) -> None:
        self.fail_pull: Set[str] = set()
        self.fail_up: Set[str] = set()
        self.calls: List[tuple] = []
        self.live: Dict[Path, str] = {}

    def _compose(self, slot_dir: Path) -> str:
        return (slot_dir / COMPOSE_FILE).read_text()

    async def pull(self, slot_dir: Path) -> None:
        compose = self._compose(slot_dir)
        self.calls.append(("pull", slot_dir, compose))
        if compose in self.fail_pull:
            raise ImagePullError(
                ["docker", "compose", "pull"], stderr="manifest unknown", returncode=1
            )

    async def up(self, slot_dir: Path) -> None:
        compose = self._compose(slot_dir)
        self.calls.append(("up", slot_dir, compose))
        if compose in self.fail_up:
            raise BringUpError(["docker", "compose", "up"], stderr="container exited", returncode=1)
        self.live[slot_dir] = compose

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def target():
    return DeploymentTarget(app="shop", tag="prod")


@pytest.fixture
def store(tmp_path):
    return SlotStore(tmp_path / "apps")


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def engine(store, runtime):
    return ApplyEngine(store, runtime)


@pytest.fixture
def agent_service(engine):
    return AgentService(engine)


@pytest.fixture
def access_token():
    return "test-access-token"
