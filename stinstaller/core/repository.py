#!/usr/bin/env python3
"""
ST Installer Repository Access
Thin git wrapper plus the handle that sync operations mutate in place
"""

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from stinstaller.core.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

STASH_LABEL_FORMAT = '%Y%m%d%H%M%S'


@contextmanager
def working_directory(path: Path) -> Iterator[Path]:
    """Change into path for the duration of the block, restoring on every exit path"""
    original = os.getcwd()
    os.chdir(path)
    try:
        yield Path(path)
    finally:
        os.chdir(original)


def stash_label(purpose: str, now: Optional[datetime] = None) -> str:
    """Timestamped stash message, e.g. AutoStash_BeforeUpdate_20250101120000"""
    stamp = (now or datetime.now()).strftime(STASH_LABEL_FORMAT)
    return f"AutoStash_{purpose}_{stamp}"


def is_repository(path: Path) -> bool:
    """True when path holds a git working copy"""
    return (Path(path) / '.git').exists()


class GitClient:
    """
    The handful of git subcommands the installer needs.

    Every method runs exactly one git process in the current directory and
    returns its CommandResult; interpretation belongs to the caller.
    """

    def __init__(self, runner: CommandRunner, remote: str = 'origin'):
        self.runner = runner
        self.remote = remote

    def _git(self, *args: str) -> CommandResult:
        return self.runner.run(['git', *args])

    def clone(self, url: str, branch: str, directory: Path) -> CommandResult:
        return self._git('clone', '-b', branch, url, str(directory))

    def current_branch(self) -> CommandResult:
        return self._git('rev-parse', '--abbrev-ref', 'HEAD')

    def stash_push(self, label: str) -> CommandResult:
        return self._git('stash', 'push', '--include-untracked', '-m', label)

    def stash_list(self) -> CommandResult:
        return self._git('stash', 'list', '--format=%gd %s')

    def stash_pop(self, ref: str) -> CommandResult:
        return self._git('stash', 'pop', ref)

    def fetch(self, branch: Optional[str] = None, into_local: bool = False) -> CommandResult:
        if branch is None:
            return self._git('fetch', self.remote)
        refspec = f"{branch}:{branch}" if into_local else branch
        return self._git('fetch', self.remote, refspec)

    def pull(self, branch: str) -> CommandResult:
        return self._git('pull', '--ff-only', self.remote, branch)

    def checkout(self, branch: str) -> CommandResult:
        return self._git('checkout', branch)

    def find_stash(self, label: str) -> Optional[str]:
        """
        Look up the stash ref (stash@{n}) whose message carries label.

        Queried fresh on every call: stash indexes shift whenever another
        entry is pushed, so a ref must never be cached across invocations.
        """
        listing = self.stash_list()
        if not listing.ok:
            logger.warning("Could not list stashes: %s", listing.output)
            return None
        for ref, message in parse_stash_list(listing.stdout):
            if message.endswith(label):
                return ref
        return None


def parse_stash_list(text: str) -> List[Tuple[str, str]]:
    """Split `git stash list --format=%gd %s` output into (ref, message) pairs"""
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        ref, _, message = line.partition(' ')
        entries.append((ref, message))
    return entries


@dataclass
class RepositoryHandle:
    """
    A local clone being worked on.

    current_branch is updated in place by sync and switch operations; None
    means the branch is unknown (detached HEAD or git failure).
    """
    working_directory: Path
    current_branch: Optional[str] = None

    @classmethod
    def open(cls, path: Path, runner: CommandRunner) -> 'RepositoryHandle':
        """Create a handle and read the checked-out branch"""
        handle = cls(Path(path).resolve())
        handle.refresh_branch(runner)
        return handle

    def refresh_branch(self, runner: CommandRunner) -> Optional[str]:
        """Re-read the checked-out branch from git"""
        with working_directory(self.working_directory):
            result = GitClient(runner).current_branch()

        branch = result.stdout.strip() if result.ok else ''
        if not branch or branch == 'HEAD':
            logger.warning(
                "Could not determine current branch in %s: %s",
                self.working_directory,
                result.output or 'detached HEAD',
            )
            self.current_branch = None
        else:
            self.current_branch = branch
        return self.current_branch
