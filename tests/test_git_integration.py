"""
Sync engine and branch switch against real git repositories
"""
from conftest import git, publish

from stinstaller.core.branch import BranchSwitchOrchestrator
from stinstaller.core.repository import RepositoryHandle
from stinstaller.core.runner import CommandRunner
from stinstaller.core.sync import RepositorySyncEngine, SyncStatus


def _open(path):
    return RepositoryHandle.open(path, CommandRunner())


class TestRealSync:

    def test_handle_reads_current_branch(self, repos):
        assert _open(repos['work']).current_branch == 'release'

    def test_detached_head_means_unknown_branch(self, repos):
        work = repos['work']
        git(work, 'checkout', '--detach')
        assert _open(work).current_branch is None

    def test_clean_tree_already_up_to_date(self, repos):
        handle = _open(repos['work'])
        result = RepositorySyncEngine(CommandRunner()).sync(handle, 'release')
        assert result.status == SyncStatus.ALREADY_UP_TO_DATE
        assert git(repos['work'], 'stash', 'list').strip() == ''

    def test_clean_tree_receives_update(self, repos):
        publish(repos['upstream'], 'shared.txt', 'shared v2\n')
        handle = _open(repos['work'])
        result = RepositorySyncEngine(CommandRunner()).sync(handle, 'release')
        assert result.status == SyncStatus.NO_LOCAL_CHANGES
        assert (repos['work'] / 'shared.txt').read_text() == 'shared v2\n'

    def test_local_edits_survive_update(self, repos):
        work = repos['work']
        publish(repos['upstream'], 'shared.txt', 'shared v2\n')
        (work / 'app.txt').write_text('line one\nline two\nmy local line\n')
        (work / 'notes.txt').write_text('untracked notes\n')

        result = RepositorySyncEngine(CommandRunner()).sync(_open(work), 'release')

        assert result.status == SyncStatus.UPDATED_CLEANLY
        assert (work / 'shared.txt').read_text() == 'shared v2\n'
        assert (work / 'app.txt').read_text().endswith('my local line\n')
        assert (work / 'notes.txt').read_text() == 'untracked notes\n'
        assert git(work, 'stash', 'list').strip() == ''

    def test_conflicting_edit_keeps_stash_and_pulled_head(self, repos):
        work = repos['work']
        publish(repos['upstream'], 'app.txt', 'line one\nupstream change\n')
        (work / 'app.txt').write_text('line one\nlocal change\n')

        result = RepositorySyncEngine(CommandRunner()).sync(_open(work), 'release')

        assert result.status == SyncStatus.RESTORE_CONFLICT
        assert result.pending_stash is not None
        assert result.pending_stash in git(work, 'stash', 'list')
        assert git(work, 'rev-parse', 'HEAD') == git(work, 'rev-parse', 'origin/release')

    def test_unreachable_remote_keeps_edits_stashed(self, repos, tmp_path):
        work = repos['work']
        git(work, 'remote', 'set-url', 'origin', str(tmp_path / 'gone.git'))
        (work / 'app.txt').write_text('edited\n')

        result = RepositorySyncEngine(CommandRunner()).sync(_open(work), 'release')

        assert not result.ok
        assert result.pending_stash is not None
        assert result.pending_stash in git(work, 'stash', 'list')


class TestRealBranchSwitch:

    def test_switch_to_staging_carries_edits(self, repos):
        work = repos['work']
        (work / 'shared.txt').write_text('edited before switching\n')
        (work / 'scratch.txt').write_text('untracked\n')
        handle = _open(work)

        result = BranchSwitchOrchestrator(RepositorySyncEngine(CommandRunner())).switch_to(handle, 'staging')

        assert result.ok
        assert handle.current_branch == 'staging'
        assert git(work, 'rev-parse', '--abbrev-ref', 'HEAD').strip() == 'staging'
        assert (work / 'staging.txt').exists()
        assert (work / 'shared.txt').read_text() == 'edited before switching\n'
        assert (work / 'scratch.txt').exists()
        assert git(work, 'stash', 'list').strip() == ''

    def test_switch_without_edits(self, repos):
        work = repos['work']
        handle = _open(work)
        result = BranchSwitchOrchestrator(RepositorySyncEngine(CommandRunner())).switch_to(handle, 'staging')
        assert result.ok
        assert handle.current_branch == 'staging'

    def test_switch_to_missing_branch_fails_cleanly(self, repos):
        work = repos['work']
        (work / 'shared.txt').write_text('keep me\n')
        handle = _open(work)

        result = BranchSwitchOrchestrator(RepositorySyncEngine(CommandRunner())).switch_to(handle, 'no-such-branch')

        assert not result.ok
        assert handle.current_branch == 'release'
        assert result.pending_stash in git(work, 'stash', 'list')
