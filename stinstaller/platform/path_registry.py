#!/usr/bin/env python3
"""
ST Installer PATH Registrar
Permanently appends a directory to the system-wide PATH
"""

import logging
import os
import posixpath
import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from stinstaller.core.environment import EnvironmentContext

logger = logging.getLogger(__name__)

WINDOWS_ENV_KEY = r'SYSTEM\CurrentControlSet\Control\Session Manager\Environment'
HWND_BROADCAST = 0xFFFF
WM_SETTINGCHANGE = 0x001A
SMTO_ABORTIFHUNG = 0x0002
BROADCAST_TIMEOUT_MS = 5000
DEFAULT_POSIX_PATH = '/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin'


class RegistrationStatus(Enum):
    ADDED = "added"
    ALREADY_PRESENT = "already_present"
    PRIVILEGE_REQUIRED = "privilege_required"
    FAILED = "failed"


@dataclass
class PathRegistration:
    """
    Outcome of one register() call.

    broadcast is True when running processes were told about the change;
    False means a new terminal (or login) is needed to see it.
    """
    directory: str
    status: RegistrationStatus
    broadcast: bool = False
    message: str = ''

    @property
    def ok(self) -> bool:
        return self.status in (RegistrationStatus.ADDED, RegistrationStatus.ALREADY_PRESENT)


def normalize_entry(entry: str) -> str:
    """
    Comparison key for a PATH entry: case-insensitive, separator-agnostic,
    no trailing separator, surrounding quotes and whitespace dropped.
    """
    cleaned = entry.strip().strip('"').strip()
    if not cleaned:
        return ''
    cleaned = cleaned.replace('\\', '/')
    cleaned = posixpath.normpath(cleaned)
    if len(cleaned) > 1:
        cleaned = cleaned.rstrip('/')
    return cleaned.casefold()


def contains_entry(path_value: str, directory: str, separator: str) -> bool:
    """True when directory already appears in a PATH value"""
    wanted = normalize_entry(directory)
    return any(normalize_entry(entry) == wanted for entry in path_value.split(separator) if entry.strip())


def append_entry(path_value: str, directory: str, separator: str) -> str:
    """Append directory to a PATH value without doubling separators"""
    trimmed = path_value.rstrip(separator)
    if not trimmed.strip():
        return directory
    return f"{trimmed}{separator}{directory}"


class PathStore(ABC):
    """Persisted system-wide PATH value"""

    separator = os.pathsep

    @abstractmethod
    def read(self) -> Tuple[str, bool]:
        """Return (value, expandable) where expandable marks %VAR% encoding"""

    @abstractmethod
    def write(self, value: str, expandable: bool) -> None:
        """Persist value, keeping the encoding read() reported"""

    def broadcast(self) -> bool:
        """Tell running processes about the change; False if that is impossible"""
        return False


class WindowsRegistryPathStore(PathStore):
    """HKLM ...\\Session Manager\\Environment\\Path"""

    separator = ';'

    def read(self) -> Tuple[str, bool]:
        import winreg

        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, WINDOWS_ENV_KEY, 0, winreg.KEY_QUERY_VALUE) as key:
            try:
                value, value_type = winreg.QueryValueEx(key, 'Path')
            except FileNotFoundError:
                return '', True
        return value, value_type == winreg.REG_EXPAND_SZ

    def write(self, value: str, expandable: bool) -> None:
        import winreg

        value_type = winreg.REG_EXPAND_SZ if expandable else winreg.REG_SZ
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, WINDOWS_ENV_KEY, 0, winreg.KEY_SET_VALUE) as key:
            winreg.SetValueEx(key, 'Path', 0, value_type, value)

    def broadcast(self) -> bool:
        try:
            import ctypes
            from ctypes import wintypes

            result = wintypes.DWORD()
            sent = ctypes.windll.user32.SendMessageTimeoutW(
                HWND_BROADCAST,
                WM_SETTINGCHANGE,
                0,
                'Environment',
                SMTO_ABORTIFHUNG,
                BROADCAST_TIMEOUT_MS,
                ctypes.byref(result),
            )
            return bool(sent)
        except (AttributeError, OSError) as e:
            logger.warning("Environment change broadcast failed: %s", e)
            return False


class EtcEnvironmentPathStore(PathStore):
    """
    PATH="..." line of /etc/environment (pam_env). Read at login, so there is
    nothing to broadcast to running processes.
    """

    separator = ':'
    _PATH_LINE = re.compile(r'^\s*PATH\s*=\s*(?P<quote>["\']?)(?P<value>.*?)(?P=quote)\s*$')

    def __init__(self, file_path: Path = Path('/etc/environment')):
        self.file_path = Path(file_path)

    def _lines(self) -> List[str]:
        if not self.file_path.exists():
            return []
        return self.file_path.read_text(encoding='utf-8').splitlines()

    def read(self) -> Tuple[str, bool]:
        for line in self._lines():
            match = self._PATH_LINE.match(line)
            if match:
                return match.group('value'), False
        return DEFAULT_POSIX_PATH, False

    def write(self, value: str, expandable: bool) -> None:
        new_line = f'PATH="{value}"'
        lines = self._lines()
        for index, line in enumerate(lines):
            if self._PATH_LINE.match(line):
                lines[index] = new_line
                break
        else:
            lines.append(new_line)
        self.file_path.write_text('\n'.join(lines) + '\n', encoding='utf-8')


def default_path_store(context: EnvironmentContext) -> PathStore:
    """PATH store for the running platform"""
    if context.is_windows:
        return WindowsRegistryPathStore()
    return EtcEnvironmentPathStore()


class PathRegistrar:
    """
    Idempotent system PATH registration. Only valid when elevated; the
    registrar itself rejects the call otherwise.
    """

    def __init__(self, context: EnvironmentContext, store: Optional[PathStore] = None):
        self.context = context
        self.store = store or default_path_store(context)

    def register(self, directory: str) -> PathRegistration:
        """
        Append directory to the system PATH if it is not already there

        Args:
            directory: Directory to add

        Returns:
            PathRegistration; never raises
        """
        directory = str(directory)
        if not self.context.elevated:
            return PathRegistration(
                directory,
                RegistrationStatus.PRIVILEGE_REQUIRED,
                message='Administrator/root rights are required to change the system PATH',
            )

        try:
            current, expandable = self.store.read()
        except OSError as e:
            logger.error("Reading the system PATH failed: %s", e)
            return PathRegistration(directory, RegistrationStatus.FAILED, message=str(e))

        if contains_entry(current, directory, self.store.separator):
            logger.info("%s is already in the system PATH", directory)
            return PathRegistration(directory, RegistrationStatus.ALREADY_PRESENT)

        updated = append_entry(current, directory, self.store.separator)
        try:
            self.store.write(updated, expandable)
        except OSError as e:
            logger.error("Writing the system PATH failed: %s", e)
            return PathRegistration(directory, RegistrationStatus.FAILED, message=str(e))

        logger.info("Added %s to the system PATH", directory)
        broadcast = self.store.broadcast()
        message = '' if broadcast else 'Open a new terminal (or log in again) to pick up the new PATH'
        return PathRegistration(directory, RegistrationStatus.ADDED, broadcast=broadcast, message=message)


def prepend_to_process_path(directory: str) -> None:
    """Make directory visible to this process and its children right away"""
    current = os.environ.get('PATH', '')
    if not contains_entry(current, directory, os.pathsep):
        os.environ['PATH'] = directory + (os.pathsep + current if current else '')


def refresh_process_path() -> bool:
    """
    Rebuild this process's PATH from the Windows registry (user + system).
    This makes newly installed tools available without a restart.
    Returns True if the PATH was refreshed.
    """
    if sys.platform != 'win32':
        return False

    import winreg

    def _query(root, sub_key: str) -> str:
        try:
            with winreg.OpenKey(root, sub_key) as key:
                return winreg.QueryValueEx(key, 'Path')[0]
        except OSError:
            return ''

    system_path = _query(winreg.HKEY_LOCAL_MACHINE, WINDOWS_ENV_KEY)
    user_path = _query(winreg.HKEY_CURRENT_USER, 'Environment')
    # Common winget shim location
    windows_apps = os.path.expandvars(r'%LOCALAPPDATA%\Microsoft\WindowsApps')

    paths: List[str] = []
    for path_str in (user_path, system_path, os.environ.get('PATH', '')):
        for entry in path_str.split(';'):
            entry = os.path.expandvars(entry.strip())
            if entry and not any(normalize_entry(entry) == normalize_entry(p) for p in paths):
                paths.append(entry)

    if not any(normalize_entry(windows_apps) == normalize_entry(p) for p in paths):
        paths.insert(0, windows_apps)

    os.environ['PATH'] = ';'.join(paths)
    return True
