#!/usr/bin/env python3
"""
ST Installer Base Installer Classes
Package manager wrappers and the per-OS operations interface
"""

import logging
import shutil
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from stinstaller.config import InstallerConfig
from stinstaller.core.environment import EnvironmentContext
from stinstaller.core.runner import CommandResult, CommandRunner
from stinstaller.platform.download import fetch
from stinstaller.platform.path_registry import PathRegistrar, PathRegistration
from stinstaller.platform.probe import ToolProbe
from stinstaller.platform.requirements import (
    DirectDownloadInstall,
    PackageManagerInstall,
    ToolRequirement,
)

logger = logging.getLogger(__name__)


def is_valid_package_id(package_id: str) -> bool:
    """Package IDs may contain alphanumerics, dash, underscore, dot and plus"""
    tokens = package_id.split()
    if not tokens:
        return False
    return all(
        token.replace('-', '').replace('_', '').replace('.', '').replace('+', '').isalnum()
        for token in tokens
    )


class PackageInstaller(ABC):
    """
    Abstract base class for package manager wrappers
    """

    def __init__(
        self,
        package_manager: str,
        runner: CommandRunner,
        auto_approve: bool = True,
        quiet_mode: bool = True,
    ):
        self.package_manager = package_manager
        self.runner = runner
        self.auto_approve = auto_approve
        self.quiet_mode = quiet_mode

    @abstractmethod
    def build_install_command(self, package_id: str, sudo: bool = False) -> List[str]:
        """
        Build the install command line

        Args:
            package_id: Package identifier (may name several packages on POSIX)
            sudo: Prefix with sudo

        Returns:
            Command and arguments
        """

    def is_available(self) -> bool:
        """Probe the package manager itself"""
        return self.runner.run([self.package_manager, '--version']).ok

    def install(self, package_id: str, sudo: bool = False) -> CommandResult:
        """
        Install a package, single attempt

        Args:
            package_id: Package identifier
            sudo: Whether to use sudo

        Returns:
            CommandResult of the package manager invocation
        """
        if not is_valid_package_id(package_id):
            return CommandResult([self.package_manager, 'install', package_id], 1, '',
                                 f"Invalid package identifier: {package_id!r}")

        cmd = self.build_install_command(package_id, sudo)
        logger.info("Installing %s with %s", package_id, self.package_manager)
        result = self.runner.run(cmd)
        if not result.ok:
            logger.warning("%s exited with %s: %s", self.package_manager, result.returncode, result.output)
        return result


class PlatformOps(ABC):
    """
    Everything the acquisition chain needs from the operating system.
    The chain resolver only ever talks to this interface.
    """

    def __init__(
        self,
        context: EnvironmentContext,
        runner: CommandRunner,
        config: Optional[InstallerConfig] = None,
        registrar: Optional[PathRegistrar] = None,
        downloader: Callable = fetch,
    ):
        self.context = context
        self.runner = runner
        self.config = config or InstallerConfig()
        self.registrar = registrar or PathRegistrar(context)
        self.downloader = downloader
        self.installers: Dict[str, PackageInstaller] = self._create_installers()

    @abstractmethod
    def _create_installers(self) -> Dict[str, PackageInstaller]:
        """Package manager name -> installer for this OS"""

    def probe(self, requirement: ToolRequirement) -> bool:
        return ToolProbe(self.runner).probe(requirement)

    def has_package_manager(self, name: str) -> bool:
        installer = self.installers.get(name)
        return installer is not None and installer.is_available()

    def allows_package_manager(self) -> bool:
        """Whether package manager strategies may run with the current privileges"""
        return True

    def use_sudo(self) -> bool:
        return False

    def install_package(self, strategy: PackageManagerInstall) -> CommandResult:
        installer = self.installers.get(strategy.manager_name)
        if installer is None:
            return CommandResult([strategy.manager_name], 1, '',
                                 f"{strategy.manager_name} is not supported on this platform")
        result = installer.install(strategy.package_identifier, sudo=self.use_sudo())
        if result.ok:
            self.refresh_process_path()
        return result

    def download_and_run(self, strategy: DirectDownloadInstall) -> CommandResult:
        """
        Download a vendor installer and run it silently

        Raises:
            DownloadError: The installer could not be fetched
        """
        return CommandResult(['download', strategy.url], 1, '',
                             'Direct-download installers are only supported on Windows')

    def register_path(self, directory: str) -> PathRegistration:
        return self.registrar.register(directory)

    def refresh_process_path(self) -> bool:
        """Reload PATH from the persisted environment; False if unsupported"""
        return False


def sudo_prefix(use_sudo: bool) -> List[str]:
    """['sudo'] when asked for and sudo exists, else []"""
    if use_sudo and shutil.which('sudo'):
        return ['sudo']
    return []
