"""
Tests for the repository sync engine and branch switch with scripted git
"""
import os

import pytest

from stinstaller.core.branch import BranchSwitchOrchestrator
from stinstaller.core.repository import RepositoryHandle, parse_stash_list, stash_label
from stinstaller.core.runner import CommandResult, RecordingRunner
from stinstaller.core.sync import RepositorySyncEngine, SyncStatus

LABEL = 'AutoStash_BeforeUpdate_20250101120000'
SWITCH_LABEL = 'AutoStash_BeforeBranchSwitch_20250101120000'

DUBIOUS = (
    "fatal: detected dubious ownership in repository at 'C:/SillyTavern'\n"
    "To add an exception for this directory, call:\n"
    "\tgit config --global --add safe.directory C:/SillyTavern"
)
STASHED = CommandResult([], 0, f'Saved working directory and index state On release: {LABEL}')
INDEX_LOCK = (
    "fatal: Unable to create '/home/u/SillyTavern/.git/index.lock': File exists.\n\n"
    "Another git process seems to be running in this repository."
)


@pytest.fixture
def fixed_labels(monkeypatch):
    monkeypatch.setattr('stinstaller.core.sync.stash_label', lambda purpose: f'AutoStash_{purpose}_20250101120000')


@pytest.fixture
def handle(tmp_path):
    return RepositoryHandle(tmp_path, current_branch='release')


def _git_verbs(runner):
    return [' '.join(cmd[1:3]) for cmd in runner.history]


class TestStashLabel:

    def test_format(self):
        from datetime import datetime
        assert stash_label('BeforeUpdate', datetime(2025, 5, 4, 3, 2, 1)) == 'AutoStash_BeforeUpdate_20250504030201'

    def test_parse_stash_list(self):
        text = f"stash@{{0}} On release: {LABEL}\nstash@{{1}} WIP on main: abc123 message\n"
        assert parse_stash_list(text) == [
            ('stash@{0}', f'On release: {LABEL}'),
            ('stash@{1}', 'WIP on main: abc123 message'),
        ]


class TestSyncEngine:

    def test_ownership_refusal_stops_before_fetch(self, handle, fixed_labels):
        runner = RecordingRunner(responses={'git stash push': CommandResult([], 128, '', DUBIOUS)})
        cwd = os.getcwd()

        result = RepositorySyncEngine(runner).sync(handle, 'release')

        assert result.status == SyncStatus.OWNERSHIP_ERROR
        assert result.remedy_path == handle.working_directory
        assert result.remedy_command == (
            f'git config --global --add safe.directory "{handle.working_directory.as_posix()}"'
        )
        assert len(runner.history) == 1
        assert os.getcwd() == cwd

    def test_nothing_to_stash_and_up_to_date(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'No local changes to save'),
            'git pull': CommandResult([], 0, 'Already up to date.'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.ALREADY_UP_TO_DATE
        assert result.pending_stash is None
        assert 'stash pop' not in _git_verbs(runner)
        assert 'stash list' not in _git_verbs(runner)

    def test_update_without_local_changes(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'No local changes to save'),
            'git pull': CommandResult([], 0, 'Fast-forward\n package.json | 2 +-'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.NO_LOCAL_CHANGES
        assert result.ok

    def test_local_changes_restored(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git stash list': CommandResult([], 0, f'stash@{{0}} On release: {LABEL}\n'),
            'git pull': CommandResult([], 0, 'Fast-forward'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.UPDATED_CLEANLY
        assert ['git', 'stash', 'pop', 'stash@{0}'] in runner.history
        assert runner.history[0] == ['git', 'stash', 'push', '--include-untracked', '-m', LABEL]

    def test_restores_the_stash_it_created_not_the_newest(self, handle, fixed_labels):
        listing = f'stash@{{0}} On release: someone else\nstash@{{1}} On release: {LABEL}\n'
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git stash list': CommandResult([], 0, listing),
        })
        RepositorySyncEngine(runner).sync(handle, 'release')
        assert ['git', 'stash', 'pop', 'stash@{1}'] in runner.history

    def test_fetch_failure_is_not_fatal(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'No local changes to save'),
            'git fetch': CommandResult([], 128, '', 'fatal: unable to access: Could not resolve host: github.com'),
            'git pull': CommandResult([], 0, 'Already up to date.'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.ok
        assert ['git', 'pull', '--ff-only', 'origin', 'release'] in runner.history

    def test_fetch_ownership_failure_aborts(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git fetch': CommandResult([], 128, '', DUBIOUS),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.OWNERSHIP_ERROR
        assert result.pending_stash == LABEL
        assert 'pull --ff-only' not in _git_verbs(runner)

    def test_pull_failure_keeps_stash(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git pull': CommandResult([], 1, '', "fatal: unable to access 'https://github.com/x': Could not resolve host"),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.NETWORK_ERROR
        assert result.pending_stash == LABEL
        assert 'stash pop' not in _git_verbs(runner)

    def test_diverged_history_is_merge_conflict(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'No local changes to save'),
            'git pull': CommandResult([], 128, '', 'fatal: Not possible to fast-forward, aborting.'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.MERGE_CONFLICT

    def test_restore_conflict(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git stash list': CommandResult([], 0, f'stash@{{0}} On release: {LABEL}\n'),
            'git stash pop': CommandResult([], 1, 'CONFLICT (content): Merge conflict in config.yaml'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.RESTORE_CONFLICT
        assert result.pending_stash == LABEL
        assert handle.current_branch == 'release'

    def test_unclassified_stash_failure_aborts(self, handle, fixed_labels):
        runner = RecordingRunner(responses={'git stash push': CommandResult([], 1, '', 'fatal: bad revision')})
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.OTHER_FAILURE
        assert len(runner.history) == 1

    def test_index_lock_during_stash_is_not_an_ownership_error(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 128, '', INDEX_LOCK),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.OTHER_FAILURE
        assert result.remedy_command is None
        assert 'index.lock' in result.details
        assert len(runner.history) == 1

    def test_unlisted_stash_is_reported_not_dropped(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': STASHED,
            'git stash list': CommandResult([], 128, '', 'fatal: unable to read stash list'),
            'git pull': CommandResult([], 0, 'Fast-forward'),
        })
        result = RepositorySyncEngine(runner).sync(handle, 'release')
        assert result.status == SyncStatus.OTHER_FAILURE
        assert not result.ok
        assert result.pending_stash == LABEL
        assert 'stash pop' not in _git_verbs(runner)


class TestBranchSwitch:

    def test_same_branch_is_plain_update(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'No local changes to save'),
            'git pull': CommandResult([], 0, 'Already up to date.'),
        })
        result = BranchSwitchOrchestrator(RepositorySyncEngine(runner)).switch_to(handle, 'release')
        assert result.status == SyncStatus.ALREADY_UP_TO_DATE
        assert not any(cmd[1] == 'checkout' for cmd in runner.history)

    def test_switch_carries_local_changes(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            # First stash (before the switch) saves edits, the nested update finds nothing
            'git stash push --include-untracked -m AutoStash_BeforeBranchSwitch_20250101120000':
                CommandResult([], 0, 'Saved working directory'),
            'git stash push --include-untracked -m AutoStash_BeforeUpdate_20250101120000':
                CommandResult([], 0, 'No local changes to save'),
            'git stash list': CommandResult([], 0, f'stash@{{0}} On release: {SWITCH_LABEL}\n'),
            'git pull': CommandResult([], 0, 'Already up to date.'),
        })
        result = BranchSwitchOrchestrator(RepositorySyncEngine(runner)).switch_to(handle, 'staging')

        assert result.ok
        assert handle.current_branch == 'staging'
        assert ['git', 'fetch', 'origin', 'staging:staging'] in runner.history
        assert ['git', 'checkout', 'staging'] in runner.history
        assert runner.history[-1] == ['git', 'stash', 'pop', 'stash@{0}']

    def test_checkout_failure_leaves_stash(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push': CommandResult([], 0, 'Saved working directory'),
            'git checkout': CommandResult([], 1, '', "error: pathspec 'nope' did not match any file(s) known to git"),
        })
        result = BranchSwitchOrchestrator(RepositorySyncEngine(runner)).switch_to(handle, 'nope')
        assert not result.ok
        assert result.pending_stash == SWITCH_LABEL
        assert handle.current_branch == 'release'
        assert 'stash pop' not in _git_verbs(runner)

    def test_failed_update_after_switch_reports_switch_stash(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push --include-untracked -m AutoStash_BeforeBranchSwitch_20250101120000':
                CommandResult([], 0, 'Saved working directory'),
            'git stash push --include-untracked -m AutoStash_BeforeUpdate_20250101120000':
                CommandResult([], 0, 'No local changes to save'),
            'git pull': CommandResult([], 1, '', 'fatal: Could not read from remote repository.'),
        })
        result = BranchSwitchOrchestrator(RepositorySyncEngine(runner)).switch_to(handle, 'staging')
        assert result.status == SyncStatus.NETWORK_ERROR
        assert result.pending_stash == SWITCH_LABEL
        assert handle.current_branch == 'staging'

    def test_unlisted_stash_after_switch_is_reported(self, handle, fixed_labels):
        runner = RecordingRunner(responses={
            'git stash push --include-untracked -m AutoStash_BeforeBranchSwitch_20250101120000':
                CommandResult([], 0, 'Saved working directory'),
            'git stash push --include-untracked -m AutoStash_BeforeUpdate_20250101120000':
                CommandResult([], 0, 'No local changes to save'),
            'git stash list': CommandResult([], 128, '', 'fatal: unable to read stash list'),
            'git pull': CommandResult([], 0, 'Already up to date.'),
        })
        result = BranchSwitchOrchestrator(RepositorySyncEngine(runner)).switch_to(handle, 'staging')
        assert result.status == SyncStatus.OTHER_FAILURE
        assert result.pending_stash == SWITCH_LABEL
        assert result.branch == 'staging'
        assert 'stash pop' not in _git_verbs(runner)
