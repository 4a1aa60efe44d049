"""rollout-manager - Sequential fleet rollouts of docker compose deployments."""

__version__ = "1.0.0"

from .engine import ApplyEngine, ApplyOptions
from .orchestrator import FleetOrchestrator
from .slots import SlotStore

__all__ = ["ApplyEngine", "ApplyOptions", "FleetOrchestrator", "SlotStore"]
