"""
ST Installer Platform-Specific Installers
Package manager wrappers and per-OS operations for Linux, macOS, and Windows
"""

from typing import Optional

from stinstaller.config import InstallerConfig
from stinstaller.core.environment import EnvironmentContext
from stinstaller.core.runner import CommandRunner
from stinstaller.platform.detector import OSType
from stinstaller.platform.installers.base import PackageInstaller, PlatformOps
from stinstaller.platform.installers.linux import (
    AptInstaller,
    DnfInstaller,
    LinuxPlatformOps,
    PacmanInstaller,
    YumInstaller,
    ZypperInstaller,
)
from stinstaller.platform.installers.macos import HomebrewInstaller, MacOSPlatformOps
from stinstaller.platform.installers.windows import (
    ChocolateyInstaller,
    WindowsPlatformOps,
    WingetInstaller,
)
from stinstaller.platform.path_registry import PathRegistrar


def get_platform_ops(
    context: EnvironmentContext,
    runner: CommandRunner,
    config: Optional[InstallerConfig] = None,
    registrar: Optional[PathRegistrar] = None,
) -> PlatformOps:
    """PlatformOps implementation for the OS in context"""
    ops_class = {
        OSType.WINDOWS: WindowsPlatformOps,
        OSType.MACOS: MacOSPlatformOps,
    }.get(context.os_type, LinuxPlatformOps)
    return ops_class(context, runner, config=config, registrar=registrar)


__all__ = [
    'PackageInstaller',
    'PlatformOps',
    'AptInstaller',
    'DnfInstaller',
    'YumInstaller',
    'PacmanInstaller',
    'ZypperInstaller',
    'HomebrewInstaller',
    'WingetInstaller',
    'ChocolateyInstaller',
    'LinuxPlatformOps',
    'MacOSPlatformOps',
    'WindowsPlatformOps',
    'get_platform_ops',
]
