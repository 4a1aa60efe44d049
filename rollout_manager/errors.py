"""
Exception hierarchy for rollout-manager.

Agent-side errors are converted to JSON responses by the API exception
handlers; orchestrator-side errors are folded into a RolloutResult.
"""

from typing import Any, Dict, List, Optional


class RolloutManagerError(Exception):
    """Base exception for rollout-manager."""

    status_code: int = 500


class ConfigurationError(RolloutManagerError):
    """Configuration is missing or invalid."""


class AuthorizationError(RolloutManagerError):
    """Bearer token missing or not equal to the shared secret."""

    status_code = 401


class ValidationError(RolloutManagerError):
    """Request payload could not be validated."""

    status_code = 400


class NoBackupAvailable(RolloutManagerError):
    """Rollback requested for a target with no retained backup generation."""

    def __init__(self, app: str, tag: str):
        self.app = app
        self.tag = tag
        super().__init__(f"No backup available for {app}:{tag}")


class SlotStorageError(RolloutManagerError):
    """Reading or writing a deployment slot failed."""


class RuntimeStepError(RolloutManagerError):
    """An external container runtime command failed."""

    def __init__(self, command: List[str], stderr: str = "", returncode: Optional[int] = None):
        self.command = command
        self.stderr = stderr.strip()
        self.returncode = returncode
        message = f"Command '{' '.join(command)}' failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class ImagePullError(RuntimeStepError):
    """Pulling the images referenced by a compose file failed."""


class BringUpError(RuntimeStepError):
    """Replacing the running containers with the new configuration failed."""


class ComposeNotFoundError(RolloutManagerError):
    """Neither Docker Compose v2 nor v1 is available on this host."""

    def __init__(self, v2_error: Optional[str] = None):
        self.v2_error = v2_error
        message = (
            "Docker Compose is not available on this system. "
            "Install the compose plugin (docker compose) or docker-compose."
        )
        if v2_error:
            message += f" Docker Compose v2 check failed: {v2_error}"
        super().__init__(message)


class DoubleFailure(RolloutManagerError):
    """A deploy failed and the rollback it triggered failed as well."""

    def __init__(self, message: str, rollback_error: Optional[str] = None):
        self.rollback_error = rollback_error
        super().__init__(message)


class NetworkError(RolloutManagerError):
    """An agent could not be reached."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Agent {url} unreachable: {reason}")


class AgentRequestError(RolloutManagerError):
    """An agent answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code or 500
        self.response = response
