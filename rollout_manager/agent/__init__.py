"""
Agent endpoint operations.
"""

from .locks import TargetLocks
from .service import AgentService

__all__ = ["AgentService", "TargetLocks"]
