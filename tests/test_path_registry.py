"""
Tests for system PATH registration
"""
import os

import pytest

from stinstaller.core.environment import EnvironmentContext
from stinstaller.platform.detector import OSType
from stinstaller.platform.path_registry import (
    DEFAULT_POSIX_PATH,
    EtcEnvironmentPathStore,
    PathRegistrar,
    PathStore,
    RegistrationStatus,
    append_entry,
    contains_entry,
    normalize_entry,
    prepend_to_process_path,
)


class MemoryPathStore(PathStore):
    """Registry stand-in keeping the value in memory"""

    separator = ';'

    def __init__(self, value='', expandable=True, can_broadcast=True):
        self.value = value
        self.expandable = expandable
        self.can_broadcast = can_broadcast
        self.writes = []
        self.broadcasts = 0

    def read(self):
        return self.value, self.expandable

    def write(self, value, expandable):
        self.writes.append((value, expandable))
        self.value = value
        self.expandable = expandable

    def broadcast(self):
        self.broadcasts += 1
        return self.can_broadcast


class BrokenPathStore(MemoryPathStore):

    def read(self):
        raise PermissionError("access denied")


@pytest.fixture
def admin():
    return EnvironmentContext(os_type=OSType.WINDOWS, elevated=True)


class TestEntryHelpers:

    def test_normalize_ignores_case_separators_and_trailing_slash(self):
        assert normalize_entry(r'C:\Program Files\Git\cmd\\') == normalize_entry('c:/program files/git/CMD')

    def test_normalize_strips_quotes(self):
        assert normalize_entry('"C:\\Tools"') == normalize_entry('C:\\Tools')

    def test_contains_entry(self):
        value = r'C:\Windows;C:\Program Files\nodejs\;C:\Tools'
        assert contains_entry(value, r'c:\program files\NODEJS', ';')
        assert not contains_entry(value, r'C:\Program Files\Git\cmd', ';')

    def test_append_entry_avoids_double_separator(self):
        assert append_entry('C:\\A;', 'C:\\B', ';') == 'C:\\A;C:\\B'
        assert append_entry('', 'C:\\B', ';') == 'C:\\B'


class TestPathRegistrar:

    def test_requires_elevation(self):
        store = MemoryPathStore(r'C:\Windows')
        context = EnvironmentContext(os_type=OSType.WINDOWS, elevated=False)
        registration = PathRegistrar(context, store).register(r'C:\Git\cmd')
        assert registration.status == RegistrationStatus.PRIVILEGE_REQUIRED
        assert not registration.ok
        assert store.writes == []

    def test_adds_missing_directory_and_broadcasts(self, admin):
        store = MemoryPathStore(r'C:\Windows')
        registration = PathRegistrar(admin, store).register(r'C:\Git\cmd')
        assert registration.status == RegistrationStatus.ADDED
        assert registration.broadcast
        assert store.value == r'C:\Windows;C:\Git\cmd'
        assert store.broadcasts == 1

    def test_idempotent(self, admin):
        store = MemoryPathStore(r'C:\Windows')
        registrar = PathRegistrar(admin, store)
        registrar.register(r'C:\Git\cmd')
        second = registrar.register(r'C:\Git\cmd')
        assert second.status == RegistrationStatus.ALREADY_PRESENT
        assert len(store.writes) == 1
        assert store.value.lower().count(r'c:\git\cmd') == 1

    def test_case_and_trailing_separator_count_as_present(self, admin):
        store = MemoryPathStore(r'C:\Windows;C:\GIT\CMD\\')
        registration = PathRegistrar(admin, store).register(r'c:\git\cmd')
        assert registration.status == RegistrationStatus.ALREADY_PRESENT
        assert store.writes == []

    def test_preserves_expandable_encoding(self, admin):
        store = MemoryPathStore(r'%SystemRoot%\system32', expandable=True)
        PathRegistrar(admin, store).register(r'C:\Tools')
        assert store.writes == [(r'%SystemRoot%\system32;C:\Tools', True)]

    def test_failed_broadcast_asks_for_new_terminal(self, admin):
        store = MemoryPathStore('', can_broadcast=False)
        registration = PathRegistrar(admin, store).register(r'C:\Tools')
        assert registration.status == RegistrationStatus.ADDED
        assert not registration.broadcast
        assert 'new terminal' in registration.message

    def test_read_failure_reported(self, admin):
        registration = PathRegistrar(admin, BrokenPathStore()).register(r'C:\Tools')
        assert registration.status == RegistrationStatus.FAILED
        assert 'access denied' in registration.message


class TestEtcEnvironmentPathStore:

    def test_missing_file_uses_default_path(self, tmp_path):
        store = EtcEnvironmentPathStore(tmp_path / 'environment')
        assert store.read() == (DEFAULT_POSIX_PATH, False)

    def test_write_replaces_path_line_only(self, tmp_path):
        env_file = tmp_path / 'environment'
        env_file.write_text('LANG="en_US.UTF-8"\nPATH="/usr/bin:/bin"\n')
        store = EtcEnvironmentPathStore(env_file)

        context = EnvironmentContext(os_type=OSType.LINUX, elevated=True)
        registration = PathRegistrar(context, store).register('/opt/node/bin')

        assert registration.status == RegistrationStatus.ADDED
        assert not registration.broadcast
        assert env_file.read_text() == 'LANG="en_US.UTF-8"\nPATH="/usr/bin:/bin:/opt/node/bin"\n'

    def test_write_appends_when_no_path_line(self, tmp_path):
        env_file = tmp_path / 'environment'
        env_file.write_text('LANG=C\n')
        store = EtcEnvironmentPathStore(env_file)
        store.write('/usr/bin:/opt/bin', False)
        assert env_file.read_text().splitlines() == ['LANG=C', 'PATH="/usr/bin:/opt/bin"']


def test_prepend_to_process_path(monkeypatch, tmp_path):
    monkeypatch.setenv('PATH', os.pathsep.join(['/usr/bin', '/bin']))
    prepend_to_process_path(str(tmp_path))
    prepend_to_process_path(str(tmp_path))
    entries = os.environ['PATH'].split(os.pathsep)
    assert entries[0] == str(tmp_path)
    assert entries.count(str(tmp_path)) == 1
