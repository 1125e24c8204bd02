#!/usr/bin/env python3
"""
ST Installer Linux Installers
Package installers for various Linux distributions
"""

from typing import Dict, List

from stinstaller.platform.installers.base import PackageInstaller, PlatformOps, sudo_prefix


class AptInstaller(PackageInstaller):
    """Debian/Ubuntu package installer using apt"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('apt', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = sudo_prefix(sudo)
        cmd.extend(['apt-get', 'install'])
        if self.auto_approve:
            cmd.append('-y')
            cmd.extend([
                '-o', 'Dpkg::Options::=--force-confdef',
                '-o', 'Dpkg::Options::=--force-confold',
            ])
        if self.quiet_mode:
            cmd.append('--quiet')
        cmd.extend(package_id.split())
        return cmd


class DnfInstaller(PackageInstaller):
    """Fedora/RHEL 8+ package installer using dnf"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('dnf', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = sudo_prefix(sudo) + [self.package_manager, 'install']
        if self.auto_approve:
            cmd.append('-y')
        if self.quiet_mode:
            cmd.append('-q')
        cmd.extend(package_id.split())
        return cmd


class YumInstaller(DnfInstaller):
    """RHEL/CentOS package installer using yum"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        PackageInstaller.__init__(self, 'yum', runner, auto_approve, quiet_mode)


class PacmanInstaller(PackageInstaller):
    """Arch Linux package installer using pacman"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('pacman', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = sudo_prefix(sudo) + ['pacman', '-S', '--needed']
        if self.auto_approve:
            cmd.append('--noconfirm')
        if self.quiet_mode:
            cmd.append('--quiet')
        cmd.extend(package_id.split())
        return cmd


class ZypperInstaller(PackageInstaller):
    """openSUSE package installer using zypper"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('zypper', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = sudo_prefix(sudo) + ['zypper']
        if self.auto_approve:
            cmd.append('--non-interactive')
        if self.quiet_mode:
            cmd.append('--quiet')
        cmd.append('install')
        cmd.extend(package_id.split())
        return cmd


class LinuxPlatformOps(PlatformOps):
    """Linux operations; package managers run through sudo when not root"""

    def _create_installers(self) -> Dict[str, PackageInstaller]:
        kwargs = {'auto_approve': self.config.auto_approve, 'quiet_mode': self.config.quiet_mode}
        return {
            'apt': AptInstaller(self.runner, **kwargs),
            'dnf': DnfInstaller(self.runner, **kwargs),
            'yum': YumInstaller(self.runner, **kwargs),
            'pacman': PacmanInstaller(self.runner, **kwargs),
            'zypper': ZypperInstaller(self.runner, **kwargs),
        }

    def use_sudo(self) -> bool:
        return not self.context.elevated
