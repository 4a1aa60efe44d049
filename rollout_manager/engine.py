"""
Apply engine for a single agent.

Moves one deployment slot through the apply state machine:

    Idle -> BackingUp -> Writing -> PullingImages -> BringingUp
         -> Succeeded
         -> RollingBack -> RolledBack | DoubleFailed

A failed image pull ends the apply as failed without a rollback: the running
containers have not been touched at that point. A failed bring-up restores
the backup generation when one exists.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from rollout_manager.errors import (
    BringUpError,
    ImagePullError,
    NoBackupAvailable,
    RuntimeStepError,
    SlotStorageError,
)
from rollout_manager.logging_config import log_slot_operation
from rollout_manager.models import (
    ApplyResult,
    ApplyStage,
    ApplyState,
    ConfigurationBundle,
    DeploymentTarget,
)
from rollout_manager.runtime import ContainerRuntime
from rollout_manager.slots import SlotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyOptions:
    """Switches for one apply of a new generation."""

    allow_backup: bool = True
    allow_rollback_on_failure: bool = True


class _StepFailed(Exception):
    """Internal: carries the stage at which write + bring-up stopped."""

    def __init__(self, stage: ApplyStage, error: Exception):
        super().__init__(str(error))
        self.stage = stage
        self.error = error


class ApplyEngine:
    """Applies configuration generations to deployment slots."""

    def __init__(self, store: SlotStore, runtime: ContainerRuntime) -> None:
        self.store = store
        self.runtime = runtime

    async def apply(
        self,
        target: DeploymentTarget,
        bundle: ConfigurationBundle,
        options: Optional[ApplyOptions] = None,
    ) -> ApplyResult:
        """Apply a new generation. Alias of apply_new with default options."""
        return await self.apply_new(target, bundle, options or ApplyOptions())

    async def apply_new(
        self,
        target: DeploymentTarget,
        bundle: ConfigurationBundle,
        options: ApplyOptions = ApplyOptions(),
    ) -> ApplyResult:
        """
        Back up the live generation, write the new one and bring it up.

        Args:
            target: Slot to deploy to
            bundle: New configuration generation
            options: Backup and rollback switches

        Returns:
            ApplyResult in state succeeded, failed, rolled_back or double_failed
        """
        backed_up = False
        if options.allow_backup:
            try:
                backed_up = await self.store.snapshot_backup(target)
            except SlotStorageError as e:
                logger.error(f"Backup of {target.key} failed, live generation untouched: {e}")
                return self._result(target, ApplyState.FAILED, ApplyStage.BACKING_UP, e)

        try:
            await self._write_and_bring_up(target, bundle)
        except _StepFailed as failure:
            result = self._result(target, ApplyState.FAILED, failure.stage, failure.error)
            result.backed_up = backed_up
            if isinstance(failure.error, BringUpError) and options.allow_rollback_on_failure:
                return await self._roll_back_after_failure(target, result)
            return result

        log_slot_operation("deployed", target.key, {"backed_up": backed_up})
        return ApplyResult(
            app=target.app, tag=target.tag, state=ApplyState.SUCCEEDED, backed_up=backed_up
        )

    async def restore_previous(self, target: DeploymentTarget) -> ApplyResult:
        """
        Make the backup generation live again.

        The backup is neither re-snapshotted nor followed by a nested rollback,
        so it survives a failed restore.

        Raises:
            NoBackupAvailable: If the target has no backup generation
        """
        backup = await self.store.read_backup(target)
        if backup is None:
            raise NoBackupAvailable(target.app, target.tag)

        log_slot_operation("restore", target.key)
        try:
            await self._write_and_bring_up(target, backup, exact=True)
        except _StepFailed as failure:
            log_slot_operation("restore_failed", target.key, {"error": str(failure)}, "ERROR")
            return self._result(target, ApplyState.FAILED, failure.stage, failure.error)

        return ApplyResult(app=target.app, tag=target.tag, state=ApplyState.SUCCEEDED)

    async def _roll_back_after_failure(
        self, target: DeploymentTarget, failed: ApplyResult
    ) -> ApplyResult:
        try:
            if await self.store.read_backup(target) is None:
                logger.warning(f"Bring-up of {target.key} failed and no backup exists to restore")
                return failed

            logger.warning(f"Bring-up of {target.key} failed, restoring previous generation")
            failed.rollback = await self.restore_previous(target)
        except SlotStorageError as e:
            failed.rollback = self._result(target, ApplyState.FAILED, ApplyStage.ROLLING_BACK, e)

        if failed.rollback.succeeded:
            failed.state = ApplyState.ROLLED_BACK
            log_slot_operation("rolled_back", target.key, level="WARNING")
        else:
            failed.state = ApplyState.DOUBLE_FAILED
            log_slot_operation(
                "double_failed", target.key, {"rollback_error": failed.rollback.error}, "ERROR"
            )
        return failed

    async def _write_and_bring_up(
        self, target: DeploymentTarget, bundle: ConfigurationBundle, exact: bool = False
    ) -> None:
        """
        Shared primitive: write the live files, pull images, bring up.

        With exact set the live files become a copy of the bundle, env file
        included or removed; otherwise an omitted env carries over.
        """
        try:
            if exact:
                await self.store.restore_current(target, bundle)
            else:
                await self.store.write_current(target, bundle)
        except SlotStorageError as e:
            raise _StepFailed(ApplyStage.WRITING, e)

        slot_dir = self.store.resolve_slot_path(target)

        try:
            await self.runtime.pull(slot_dir)
        except RuntimeStepError as e:
            raise _StepFailed(ApplyStage.PULLING_IMAGES, self._as(ImagePullError, e))
        log_slot_operation("pull", target.key)

        try:
            await self.runtime.up(slot_dir)
        except RuntimeStepError as e:
            raise _StepFailed(ApplyStage.BRINGING_UP, self._as(BringUpError, e))
        log_slot_operation("up", target.key)

    @staticmethod
    def _as(error_cls, error: RuntimeStepError) -> RuntimeStepError:
        if isinstance(error, error_cls):
            return error
        return error_cls(error.command, stderr=error.stderr, returncode=error.returncode)

    @staticmethod
    def _result(
        target: DeploymentTarget, state: ApplyState, stage: ApplyStage, error: Exception
    ) -> ApplyResult:
        return ApplyResult(
            app=target.app, tag=target.tag, state=state, failed_stage=stage, error=str(error)
        )
