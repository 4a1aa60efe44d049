"""
Audit logging for fleet rollouts.

Appends one JSON object per line for every rollout, node outcome and
compensation, so a partial-fleet failure can be reconstructed afterwards.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class AuditLog:
    """JSONL audit trail of rollout actions."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """
        Args:
            path: Audit file location; None disables auditing
        """
        self.path = Path(path) if path else None

    def record(
        self,
        action: str,
        rollout_id: str,
        node: Optional[str] = None,
        success: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a rollout action.

        Args:
            action: rollout_started, node_deployed, node_failed, compensated, rollout_finished
            rollout_id: Rollout identifier
            node: Agent URL the action concerns
            success: Whether the action succeeded
            details: Additional details
        """
        if self.path is None:
            return

        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "rollout_id": rollout_id,
            "details": details or {},
        }
        if node is not None:
            entry["node"] = node
        if success is not None:
            entry["success"] = success

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            # Audit failures never abort a rollout
            logger.error(f"Failed to write audit log: {e}")
