"""
Shared fixtures for ST Installer tests
"""
import shutil
import subprocess
from pathlib import Path

import pytest

from stinstaller.core.environment import EnvironmentContext
from stinstaller.platform.detector import OSType


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd and return stdout; fails the test on error"""
    result = subprocess.run(
        ['git', *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout


@pytest.fixture
def linux_user(tmp_path):
    """Non-elevated Linux context with a private scratch directory"""
    return EnvironmentContext(os_type=OSType.LINUX, elevated=False, scratch_dir=tmp_path / 'scratch')


@pytest.fixture
def windows_admin(tmp_path):
    scratch = tmp_path / 'scratch'
    scratch.mkdir(exist_ok=True)
    return EnvironmentContext(os_type=OSType.WINDOWS, elevated=True, scratch_dir=scratch)


@pytest.fixture
def windows_user(tmp_path):
    scratch = tmp_path / 'scratch'
    scratch.mkdir(exist_ok=True)
    return EnvironmentContext(os_type=OSType.WINDOWS, elevated=False, scratch_dir=scratch)


@pytest.fixture
def git_env(tmp_path, monkeypatch):
    """Isolated git identity and configuration"""
    if shutil.which('git') is None:
        pytest.skip("git is not installed")

    home = tmp_path / 'home'
    home.mkdir()
    global_config = home / '.gitconfig'
    global_config.write_text('')

    monkeypatch.setenv('HOME', str(home))
    monkeypatch.setenv('GIT_CONFIG_GLOBAL', str(global_config))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    monkeypatch.setenv('GIT_AUTHOR_NAME', 'Test Author')
    monkeypatch.setenv('GIT_AUTHOR_EMAIL', 'author@example.com')
    monkeypatch.setenv('GIT_COMMITTER_NAME', 'Test Author')
    monkeypatch.setenv('GIT_COMMITTER_EMAIL', 'author@example.com')
    monkeypatch.setenv('GIT_TERMINAL_PROMPT', '0')
    return tmp_path


@pytest.fixture
def repos(git_env):
    """
    A bare remote with 'release' and 'staging' branches, a working clone of
    release, and an 'upstream' clone used to publish new commits.

    Returns:
        dict with 'remote', 'work' and 'upstream' paths
    """
    root = git_env
    seed = root / 'seed'
    seed.mkdir()
    git(seed, 'init')
    git(seed, 'checkout', '-b', 'release')
    (seed / 'app.txt').write_text('line one\nline two\n')
    (seed / 'shared.txt').write_text('shared\n')
    git(seed, 'add', '.')
    git(seed, 'commit', '-m', 'initial release')

    git(seed, 'checkout', '-b', 'staging')
    (seed / 'staging.txt').write_text('staging only\n')
    git(seed, 'add', '.')
    git(seed, 'commit', '-m', 'staging work')
    git(seed, 'checkout', 'release')

    remote = root / 'remote.git'
    git(root, 'clone', '--bare', str(seed), str(remote))

    work = root / 'work'
    git(root, 'clone', '-b', 'release', str(remote), str(work))

    upstream = root / 'upstream'
    git(root, 'clone', '-b', 'release', str(remote), str(upstream))

    return {'remote': remote, 'work': work, 'upstream': upstream}


def publish(upstream: Path, filename: str, content: str, branch: str = 'release'):
    """Commit a file change in the upstream clone and push it"""
    git(upstream, 'checkout', branch)
    (upstream / filename).write_text(content)
    git(upstream, 'add', filename)
    git(upstream, 'commit', '-m', f'update {filename}')
    git(upstream, 'push', 'origin', branch)
