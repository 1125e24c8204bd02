#!/usr/bin/env python3
"""
ST Installer Tool Requirements
What the installer needs on the machine and the ways to get it there
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from stinstaller.config import InstallerConfig
from stinstaller.core.classifier import ErrorKind
from stinstaller.core.environment import EnvironmentContext
from stinstaller.platform.detector import OSType, PREFERRED_MANAGERS
from stinstaller.platform.path_registry import PathRegistration


class InstallerKind(Enum):
    MSI = "msi"
    EXE = "exe"


@dataclass(frozen=True)
class PackageManagerInstall:
    """Install through a package manager, e.g. winget or apt"""
    manager_name: str
    package_identifier: str

    def describe(self) -> str:
        return f"{self.manager_name}: {self.package_identifier}"


@dataclass(frozen=True)
class DirectDownloadInstall:
    """Download a vendor installer and run it silently"""
    url: str
    local_installer_name: str
    installer_kind: InstallerKind
    silent_args: Tuple[str, ...] = ()
    common_install_paths: Tuple[str, ...] = ()

    def describe(self) -> str:
        return f"download: {self.url}"


AcquisitionStrategy = Union[PackageManagerInstall, DirectDownloadInstall]
ToolProbeCommands = Tuple[Tuple[str, ...], ...]


@dataclass(frozen=True)
class ToolRequirement:
    """
    A tool that must be runnable before any repository work starts.

    probe_commands: every invocation must exit 0 for the tool to count as present
    strategies: tried in order, earlier entries preferred
    """
    name: str
    probe_commands: ToolProbeCommands
    strategies: Tuple[AcquisitionStrategy, ...] = ()
    manual_url: str = ''

    @property
    def executable(self) -> str:
        return self.probe_commands[0][0]


@dataclass
class AcquisitionOutcome:
    """Result of acquiring one tool"""
    requirement: str
    strategy_used: Optional[AcquisitionStrategy]
    succeeded: bool
    resolved_executable_path: Optional[str] = None
    diagnostic_text: str = ''
    error_kind: ErrorKind = ErrorKind.NONE
    attempts: int = 0
    newly_installed: bool = False
    path_registrations: List[PathRegistration] = field(default_factory=list)


class ToolMapper:
    """
    Maps required tools to package names for different package managers
    """

    # Space-separated names install several packages in one call (POSIX managers only)
    TOOL_PACKAGES: Dict[str, Dict[str, str]] = {
        'git': {
            'winget': 'Git.Git',
            'choco': 'git.install',
            'brew': 'git',
            'apt': 'git',
            'dnf': 'git',
            'yum': 'git',
            'pacman': 'git',
            'zypper': 'git',
        },
        'node': {
            'winget': 'OpenJS.NodeJS.LTS',
            'choco': 'nodejs-lts',
            'brew': 'node',
            'apt': 'nodejs npm',
            'dnf': 'nodejs npm',
            'yum': 'nodejs npm',
            'pacman': 'nodejs npm',
            'zypper': 'nodejs npm',
        },
    }

    MANUAL_URLS = {
        'git': 'https://git-scm.com/downloads',
        'node': 'https://nodejs.org/en/download',
    }

    @classmethod
    def get_package_name(cls, tool: str, package_manager: str) -> Optional[str]:
        """
        Get the package name for a tool on a specific package manager

        Args:
            tool: Tool name ('git' or 'node')
            package_manager: Package manager (e.g., 'winget', 'apt')

        Returns:
            Package name, or None if not available
        """
        return cls.TOOL_PACKAGES.get(tool, {}).get(package_manager)

    @classmethod
    def package_strategies(cls, tool: str, os_type: OSType) -> List[PackageManagerInstall]:
        """Package manager strategies for tool, in the OS's preference order"""
        strategies = []
        for pm in PREFERRED_MANAGERS.get(os_type, []):
            package = cls.get_package_name(tool, pm.value)
            if package:
                strategies.append(PackageManagerInstall(pm.value, package))
        return strategies


GIT_SILENT_ARGS = (
    '/VERYSILENT',
    '/NORESTART',
    '/NOCANCEL',
    '/SP-',
    '/CLOSEAPPLICATIONS',
    '/RESTARTAPPLICATIONS',
    '/MERGETASKS=!desktopicon',
    '/PATHOPT=CmdTools',
    '/COMPONENTS=icons,ext\\reg\\shellhere,assoc,assoc_sh,gitlfs,scalar',
)

GIT_COMMON_PATHS = (
    r'%ProgramFiles%\Git\cmd',
    r'%ProgramFiles%\Git\bin',
    r'%ProgramFiles(x86)%\Git\cmd',
    r'C:\Git\cmd',
)

NODE_COMMON_PATHS = (
    r'%ProgramFiles%\nodejs',
    r'%ProgramFiles(x86)%\nodejs',
)


def default_requirements(context: EnvironmentContext, config: InstallerConfig) -> List[ToolRequirement]:
    """
    Requirements for running SillyTavern: git, then Node.js with npm

    Args:
        context: Environment the strategies are built for
        config: Installer settings (download URLs)

    Returns:
        Requirements in the order they must be satisfied
    """
    git_strategies: List[AcquisitionStrategy] = list(ToolMapper.package_strategies('git', context.os_type))
    node_strategies: List[AcquisitionStrategy] = list(ToolMapper.package_strategies('node', context.os_type))

    if context.is_windows:
        git_strategies.append(DirectDownloadInstall(
            url=config.git_installer_url,
            local_installer_name='git_installer.exe',
            installer_kind=InstallerKind.EXE,
            silent_args=GIT_SILENT_ARGS,
            common_install_paths=GIT_COMMON_PATHS,
        ))
        node_strategies.append(DirectDownloadInstall(
            url=config.node_installer_url,
            local_installer_name='nodejs_lts_installer.msi',
            installer_kind=InstallerKind.MSI,
            common_install_paths=NODE_COMMON_PATHS,
        ))

    return [
        ToolRequirement(
            name='git',
            probe_commands=(('git', '--version'),),
            strategies=tuple(git_strategies),
            manual_url=config.git_installer_url if context.is_windows else ToolMapper.MANUAL_URLS['git'],
        ),
        ToolRequirement(
            name='node',
            probe_commands=(('node', '--version'), ('npm', '--version')),
            strategies=tuple(node_strategies),
            manual_url=config.node_installer_url if context.is_windows else ToolMapper.MANUAL_URLS['node'],
        ),
    ]
