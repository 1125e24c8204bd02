#!/usr/bin/env python3
"""
ST Installer Platform Detection
Detects operating system, package managers and privilege level
"""

import os
import platform
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class OSType(Enum):
    """Operating system types"""
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"
    UNKNOWN = "unknown"


class PackageManager(Enum):
    """Package manager types"""
    APT = "apt"              # Debian/Ubuntu
    YUM = "yum"              # RHEL/CentOS (old)
    DNF = "dnf"              # Fedora/RHEL 8+
    PACMAN = "pacman"        # Arch Linux
    ZYPPER = "zypper"        # openSUSE
    BREW = "brew"            # macOS/Linux Homebrew
    WINGET = "winget"        # Windows 10/11
    CHOCOLATEY = "choco"     # Windows


# Preference order per OS; the first available one is the primary manager
PREFERRED_MANAGERS: Dict[OSType, List[PackageManager]] = {
    OSType.WINDOWS: [PackageManager.WINGET, PackageManager.CHOCOLATEY],
    OSType.MACOS: [PackageManager.BREW],
    OSType.LINUX: [
        PackageManager.APT,
        PackageManager.DNF,
        PackageManager.YUM,
        PackageManager.PACMAN,
        PackageManager.ZYPPER,
    ],
    OSType.UNKNOWN: [],
}


@dataclass
class PlatformInfo:
    """Complete platform information"""
    os_type: OSType
    os_name: str
    os_version: str
    architecture: str
    package_managers: List[PackageManager]
    primary_package_manager: Optional[PackageManager]
    is_elevated: bool
    is_wsl: bool
    python_version: str


def is_elevated() -> bool:
    """
    Check whether this process may change system-wide settings

    Windows: member of the Administrators group with an elevated token.
    POSIX: effective uid 0.
    """
    if platform.system().lower() == 'windows':
        try:
            import ctypes
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False

    geteuid = getattr(os, 'geteuid', None)
    return geteuid is not None and geteuid() == 0


class PlatformDetector:
    """
    Detect platform details: OS, package managers, privilege level
    """

    def detect(self) -> PlatformInfo:
        """
        Perform full platform detection

        Returns:
            PlatformInfo with all detected details
        """
        os_type = self._detect_os()
        managers = self._detect_package_managers()

        return PlatformInfo(
            os_type=os_type,
            os_name=platform.system(),
            os_version=platform.release(),
            architecture=platform.machine(),
            package_managers=managers,
            primary_package_manager=self._get_primary_package_manager(os_type, managers),
            is_elevated=is_elevated(),
            is_wsl=self._is_wsl(),
            python_version=platform.python_version(),
        )

    def _detect_os(self) -> OSType:
        """Detect operating system type"""
        system = platform.system().lower()

        if system == 'linux':
            return OSType.LINUX
        elif system == 'darwin':
            return OSType.MACOS
        elif system == 'windows':
            return OSType.WINDOWS
        else:
            return OSType.UNKNOWN

    def _is_wsl(self) -> bool:
        """Check if running in Windows Subsystem for Linux"""
        # WSL has /proc/version with "Microsoft" or "WSL"
        proc_version = Path('/proc/version')
        if proc_version.exists():
            try:
                version = proc_version.read_text().lower()
                return 'microsoft' in version or 'wsl' in version
            except OSError:
                pass
        return False

    def _detect_package_managers(self) -> List[PackageManager]:
        """Detect all available package managers"""
        return [pm for pm in PackageManager if shutil.which(pm.value)]

    def _get_primary_package_manager(
        self, os_type: OSType, available: List[PackageManager]
    ) -> Optional[PackageManager]:
        """Get the primary/recommended package manager for the OS"""
        for pm in PREFERRED_MANAGERS.get(os_type, []):
            if pm in available:
                return pm
        return None
