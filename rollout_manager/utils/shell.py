"""
Async subprocess helper for external runtime commands.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Type, Union

from rollout_manager.errors import RuntimeStepError

logger = logging.getLogger(__name__)


async def run_command(
    cmd: List[str],
    cwd: Optional[Union[str, Path]] = None,
    error_cls: Type[RuntimeStepError] = RuntimeStepError,
) -> str:
    """
    Run a command and return its stdout.

    Args:
        cmd: Command and arguments
        cwd: Working directory for the process
        error_cls: Exception raised on a non-zero exit code

    Returns:
        Decoded stdout

    Raises:
        error_cls: If the command exits non-zero or cannot be started
    """
    logger.debug(f"Running {' '.join(cmd)} in {cwd or '.'}")
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise error_cls(cmd, stderr=str(e))

    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise error_cls(
            cmd,
            stderr=stderr.decode(errors="replace") if stderr else "",
            returncode=process.returncode,
        )

    return stdout.decode(errors="replace") if stdout else ""
