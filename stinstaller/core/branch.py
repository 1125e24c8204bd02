#!/usr/bin/env python3
"""
ST Installer Branch Switch Orchestrator
Moves a working tree to another branch, carrying uncommitted edits along
"""

import logging

from stinstaller.core.classifier import ErrorKind, classify
from stinstaller.core.repository import RepositoryHandle, working_directory
from stinstaller.core.sync import (
    ProtectState,
    RepositorySyncEngine,
    RestoreState,
    SyncResult,
    SyncStatus,
)

logger = logging.getLogger(__name__)


class BranchSwitchOrchestrator:
    """Composes sync engine steps into a branch switch"""

    def __init__(self, engine: RepositorySyncEngine):
        self.engine = engine

    def switch_to(self, handle: RepositoryHandle, target_branch: str) -> SyncResult:
        """
        Check out target_branch, update it, then re-apply the edits that were
        present before the switch

        Args:
            handle: Repository to operate on; current_branch follows the checkout
            target_branch: Branch to move to

        Returns:
            SyncResult; pending_stash names the stash left behind on failure
        """
        if handle.current_branch == target_branch:
            logger.info("Already on %s, updating instead", target_branch)
            return self.engine.sync(handle, target_branch)

        with working_directory(handle.working_directory):
            return self._switch(handle, target_branch)

    def _switch(self, handle: RepositoryHandle, target_branch: str) -> SyncResult:
        git = self.engine.git

        protection = self.engine.protect(handle, 'BeforeBranchSwitch')
        if protection.state == ProtectState.FAILED:
            return SyncResult.from_failure(protection.failure, handle)

        fetched = git.fetch(target_branch, into_local=True)
        if not fetched.ok:
            if classify(fetched.output) == ErrorKind.OWNERSHIP:
                return SyncResult.from_failure(fetched, handle, protection.label)
            logger.warning("Fetching %s may have failed: %s", target_branch, fetched.output)

        checked_out = git.checkout(target_branch)
        if not checked_out.ok:
            # No restore: the stash stays put for manual recovery on this branch
            logger.error("git checkout %s failed: %s", target_branch, checked_out.output)
            return SyncResult.from_failure(checked_out, handle, protection.label)

        handle.current_branch = target_branch
        logger.info("Switched to %s", target_branch)

        updated = self.engine.sync(handle, target_branch)
        if not updated.ok:
            if protection.restore_owed and updated.pending_stash is None:
                updated.pending_stash = protection.label
            return updated

        if not protection.restore_owed:
            return updated

        restoration = self.engine.restore(protection.label)
        if restoration.state == RestoreState.CONFLICT:
            return SyncResult(
                SyncStatus.RESTORE_CONFLICT,
                details=restoration.details,
                pending_stash=protection.label,
                branch=target_branch,
            )
        if restoration.state in (RestoreState.FAILED, RestoreState.SKIPPED):
            return SyncResult(
                SyncStatus.OTHER_FAILURE,
                details=restoration.details,
                pending_stash=protection.label,
                branch=target_branch,
            )

        if updated.status == SyncStatus.NO_LOCAL_CHANGES:
            updated.status = SyncStatus.UPDATED_CLEANLY
        return updated
