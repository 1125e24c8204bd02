#!/usr/bin/env python3
"""
ST Installer Repository Sync Engine
Fetch/pull a branch inside a stash-protect/restore envelope and classify
whatever goes wrong along the way
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from stinstaller.core.classifier import ErrorKind, classify
from stinstaller.core.repository import (
    GitClient,
    RepositoryHandle,
    stash_label,
    working_directory,
)
from stinstaller.core.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    """Outcome of a sync or branch switch"""
    UPDATED_CLEANLY = "updated_cleanly"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    NO_LOCAL_CHANGES = "no_local_changes"
    RESTORE_CONFLICT = "restore_conflict"
    MERGE_CONFLICT = "merge_conflict"
    OWNERSHIP_ERROR = "ownership_error"
    NETWORK_ERROR = "network_error"
    OTHER_FAILURE = "other_failure"


SUCCESS_STATUSES = {
    SyncStatus.UPDATED_CLEANLY,
    SyncStatus.ALREADY_UP_TO_DATE,
    SyncStatus.NO_LOCAL_CHANGES,
}

_FAILURE_STATUS = {
    ErrorKind.OWNERSHIP: SyncStatus.OWNERSHIP_ERROR,
    ErrorKind.MERGE_CONFLICT: SyncStatus.MERGE_CONFLICT,
    ErrorKind.NETWORK: SyncStatus.NETWORK_ERROR,
}


@dataclass
class SyncResult:
    """
    Tagged result of a repository operation.

    Attributes:
        status: What happened
        details: Raw diagnostic text from git, when there is any
        remedy_path: Directory git refused to trust (OWNERSHIP_ERROR only)
        pending_stash: Label of a stash left in place for manual recovery
        branch: Branch the working tree is on afterwards
    """
    status: SyncStatus
    details: str = ''
    remedy_path: Optional[Path] = None
    pending_stash: Optional[str] = None
    branch: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def remedy_command(self) -> Optional[str]:
        """Exact command that marks the repository as trusted"""
        if self.status != SyncStatus.OWNERSHIP_ERROR or self.remedy_path is None:
            return None
        return f'git config --global --add safe.directory "{self.remedy_path.as_posix()}"'

    @classmethod
    def from_failure(
        cls,
        result: CommandResult,
        handle: RepositoryHandle,
        pending_stash: Optional[str] = None,
    ) -> 'SyncResult':
        """Classify a failed git invocation into a failure result"""
        details = result.output
        status = _FAILURE_STATUS.get(classify(details), SyncStatus.OTHER_FAILURE)
        return cls(
            status=status,
            details=details,
            remedy_path=handle.working_directory if status == SyncStatus.OWNERSHIP_ERROR else None,
            pending_stash=pending_stash,
            branch=handle.current_branch,
        )


class ProtectState(Enum):
    """Result of the protect step"""
    STASHED = "stashed"
    SKIPPED = "skipped"       # nothing to stash
    FAILED = "failed"


@dataclass
class Protection:
    """What the protect step did; label is set only when a restore is owed"""
    state: ProtectState
    label: Optional[str] = None
    failure: Optional[CommandResult] = None

    @property
    def restore_owed(self) -> bool:
        return self.state == ProtectState.STASHED


class RestoreState(Enum):
    """Result of the restore step"""
    RESTORED = "restored"
    SKIPPED = "skipped"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass
class Restoration:
    state: RestoreState
    details: str = ''


class RepositorySyncEngine:
    """
    State machine per call:
    Start -> Stashed|StashSkipped -> Fetched|FetchFailed -> Pulled|PullFailed
          -> Restored|RestoreSkipped|RestoreFailed -> Done
    """

    def __init__(self, runner: CommandRunner, remote: str = 'origin'):
        self.runner = runner
        self.git = GitClient(runner, remote)

    def sync(self, handle: RepositoryHandle, branch: str) -> SyncResult:
        """
        Bring branch up to date with its remote counterpart, carrying local edits

        Args:
            handle: Repository to update; current_branch is set to branch on success
            branch: Branch to pull

        Returns:
            SyncResult describing the outcome; never raises for git failures
        """
        with working_directory(handle.working_directory):
            return self._sync(handle, branch)

    def _sync(self, handle: RepositoryHandle, branch: str) -> SyncResult:
        protection = self.protect(handle, 'BeforeUpdate')
        if protection.state == ProtectState.FAILED:
            return SyncResult.from_failure(protection.failure, handle)

        fetched = self.git.fetch(branch)
        if not fetched.ok:
            if classify(fetched.output) == ErrorKind.OWNERSHIP:
                return SyncResult.from_failure(fetched, handle, protection.label)
            # Some remotes allow pull where a plain fetch failed
            logger.warning("git fetch %s failed, trying pull anyway: %s", branch, fetched.output)

        pulled = self.git.pull(branch)
        if not pulled.ok:
            # Leave the tree exactly as protected; no automatic restore
            logger.warning("git pull %s failed: %s", branch, pulled.output)
            return SyncResult.from_failure(pulled, handle, protection.label)

        handle.current_branch = branch
        up_to_date = classify(pulled.output, ErrorKind.NONE) == ErrorKind.ALREADY_UP_TO_DATE

        if protection.restore_owed:
            restoration = self.restore(protection.label)
            if restoration.state == RestoreState.CONFLICT:
                return SyncResult(
                    SyncStatus.RESTORE_CONFLICT,
                    details=restoration.details,
                    pending_stash=protection.label,
                    branch=branch,
                )
            if restoration.state in (RestoreState.FAILED, RestoreState.SKIPPED):
                return SyncResult(
                    SyncStatus.OTHER_FAILURE,
                    details=restoration.details,
                    pending_stash=protection.label,
                    branch=branch,
                )

        if up_to_date:
            status = SyncStatus.ALREADY_UP_TO_DATE
        elif protection.restore_owed:
            status = SyncStatus.UPDATED_CLEANLY
        else:
            status = SyncStatus.NO_LOCAL_CHANGES
        return SyncResult(status, details=pulled.output, branch=branch)

    def protect(self, handle: RepositoryHandle, purpose: str) -> Protection:
        """
        Stash all local modifications, untracked files included.
        Must run inside the repository's working directory.
        """
        label = stash_label(purpose)
        result = self.git.stash_push(label)
        kind = classify(result.output, ErrorKind.NONE)

        if kind == ErrorKind.OWNERSHIP:
            logger.error("git refused to operate on %s: %s", handle.working_directory, result.output)
            return Protection(ProtectState.FAILED, failure=result)
        if kind == ErrorKind.NO_LOCAL_CHANGES:
            logger.info("No local changes to stash")
            return Protection(ProtectState.SKIPPED)
        if result.ok:
            logger.info("Local changes stashed as %s", label)
            return Protection(ProtectState.STASHED, label=label)

        logger.error("git stash failed: %s", result.output)
        return Protection(ProtectState.FAILED, failure=result)

    def restore(self, label: str) -> Restoration:
        """
        Re-apply the stash carrying label, exactly once.
        Must run inside the repository's working directory.
        """
        ref = self.git.find_stash(label)
        if ref is None:
            logger.warning("Stash %s could not be found, leaving it for manual recovery", label)
            return Restoration(RestoreState.SKIPPED, f"Could not find the stash '{label}' to restore")

        popped = self.git.stash_pop(ref)
        if popped.ok:
            logger.info("Restored local changes from %s", label)
            return Restoration(RestoreState.RESTORED, popped.output)

        if classify(popped.output) == ErrorKind.MERGE_CONFLICT:
            logger.warning("Restoring %s produced conflicts", label)
            return Restoration(RestoreState.CONFLICT, popped.output)

        logger.error("git stash pop %s failed: %s", ref, popped.output)
        return Restoration(RestoreState.FAILED, popped.output)
