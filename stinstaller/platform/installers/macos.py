#!/usr/bin/env python3
"""
ST Installer macOS Installers
Package installer for macOS using Homebrew
"""

from typing import Dict, List

from stinstaller.platform.installers.base import PackageInstaller, PlatformOps


class HomebrewInstaller(PackageInstaller):
    """macOS package installer using Homebrew"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('brew', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        # Homebrew refuses to run under sudo
        cmd = ['brew', 'install']
        if self.quiet_mode:
            cmd.append('--quiet')
        cmd.extend(package_id.split())
        return cmd


class MacOSPlatformOps(PlatformOps):
    """macOS operations"""

    def _create_installers(self) -> Dict[str, PackageInstaller]:
        return {
            'brew': HomebrewInstaller(
                self.runner,
                auto_approve=self.config.auto_approve,
                quiet_mode=self.config.quiet_mode,
            ),
        }

    def allows_package_manager(self) -> bool:
        # brew will not run as root
        return not self.context.elevated
