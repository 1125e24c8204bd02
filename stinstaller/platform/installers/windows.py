#!/usr/bin/env python3
"""
ST Installer Windows Installers
winget, Chocolatey and silent vendor installers (MSI/EXE)
"""

import logging
from pathlib import Path
from typing import Dict, List

from stinstaller.core.runner import CommandResult
from stinstaller.platform.installers.base import PackageInstaller, PlatformOps
from stinstaller.platform.path_registry import refresh_process_path
from stinstaller.platform.requirements import DirectDownloadInstall, InstallerKind

logger = logging.getLogger(__name__)

# winget reports these with a non-zero exit code even though the tool is there
_WINGET_SATISFIED = ('already installed', 'no available upgrade found', 'no newer package versions')


class WingetInstaller(PackageInstaller):
    """Windows package installer using winget"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('winget', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = ['winget', 'install', '-e', '--id', package_id]
        if self.auto_approve:
            cmd.extend(['--accept-source-agreements', '--accept-package-agreements'])
        if self.quiet_mode:
            cmd.append('--silent')
        return cmd

    def install(self, package_id: str, sudo: bool = False) -> CommandResult:
        result = super().install(package_id, sudo)
        if not result.ok and any(marker in result.output.lower() for marker in _WINGET_SATISFIED):
            logger.info("winget reports %s is already installed", package_id)
            return CommandResult(result.command, 0, result.stdout, result.stderr)
        return result


class ChocolateyInstaller(PackageInstaller):
    """Windows package installer using Chocolatey"""

    def __init__(self, runner, auto_approve: bool = True, quiet_mode: bool = True):
        super().__init__('choco', runner, auto_approve, quiet_mode)

    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        cmd = ['choco', 'install', package_id]
        if self.auto_approve:
            cmd.append('-y')
        if self.quiet_mode:
            cmd.append('--limit-output')
        return cmd


class WindowsPlatformOps(PlatformOps):
    """
    Windows operations.

    Package managers run only without elevation: an elevated session goes
    straight to the vendor installers, which also let us register PATH
    entries system-wide.
    """

    def _create_installers(self) -> Dict[str, PackageInstaller]:
        kwargs = {'auto_approve': self.config.auto_approve, 'quiet_mode': self.config.quiet_mode}
        return {
            'winget': WingetInstaller(self.runner, **kwargs),
            'choco': ChocolateyInstaller(self.runner, **kwargs),
        }

    def allows_package_manager(self) -> bool:
        return not self.context.elevated

    def build_installer_command(self, strategy: DirectDownloadInstall, installer_path: Path) -> List[str]:
        """Silent command line for a downloaded installer"""
        if strategy.installer_kind == InstallerKind.MSI:
            log_path = self.context.scratch_dir / f"{installer_path.stem}_install.log"
            return ['msiexec', '/i', str(installer_path), '/quiet', '/norestart', '/L*v', str(log_path)]
        return [str(installer_path), *strategy.silent_args]

    def download_and_run(self, strategy: DirectDownloadInstall) -> CommandResult:
        installer_path = self.context.scratch_dir / strategy.local_installer_name
        try:
            self.downloader(
                strategy.url,
                installer_path,
                timeout=self.config.download_timeout,
                max_redirects=self.config.download_max_redirects,
            )
            cmd = self.build_installer_command(strategy, installer_path)
            logger.info("Running %s silently", installer_path.name)
            result = self.runner.run(cmd)
        finally:
            # The artifact never outlives the attempt
            try:
                installer_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not delete %s: %s", installer_path, e)

        if result.ok:
            self.refresh_process_path()
        else:
            logger.warning("%s exited with %s", installer_path.name, result.returncode)
        return result

    def refresh_process_path(self) -> bool:
        return refresh_process_path()
