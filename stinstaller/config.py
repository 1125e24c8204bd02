#!/usr/bin/env python3
"""
ST Installer Configuration Management
Handles .stinstaller.yml settings files
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_REPO_URL = "https://github.com/SillyTavern/SillyTavern.git"
DEFAULT_NODE_INSTALLER_URL = "https://nodejs.org/dist/v22.15.0/node-v22.15.0-x64.msi"
DEFAULT_GIT_INSTALLER_URL = (
    "https://github.com/git-for-windows/git/releases/download/"
    "v2.49.0.windows.1/Git-2.49.0-64-bit.exe"
)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Nested settings block; anything other than a mapping is ignored"""
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring '%s' settings: expected a mapping, got %s", name, type(value).__name__)
        return {}
    return value


@dataclass
class InstallerConfig:
    """ST Installer configuration structure"""

    # Repository
    repo_url: str = DEFAULT_REPO_URL
    stable_branch: str = "release"
    staging_branch: str = "staging"
    install_dir: str = "SillyTavern"

    # Direct-download installers (Windows)
    node_installer_url: str = DEFAULT_NODE_INSTALLER_URL
    git_installer_url: str = DEFAULT_GIT_INSTALLER_URL
    download_timeout: int = 60
    download_max_redirects: int = 10

    # Package manager behaviour (non-interactive defaults)
    auto_approve: bool = True
    quiet_mode: bool = True

    # SillyTavern's own config.yaml
    app_config_file: str = "config.yaml"
    default_port: int = 8000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InstallerConfig':
        """Create config from dictionary"""
        config = cls()

        repository = _section(data, 'repository')
        config.repo_url = repository.get('url', config.repo_url)
        config.stable_branch = repository.get('stable_branch', config.stable_branch)
        config.staging_branch = repository.get('staging_branch', config.staging_branch)
        config.install_dir = repository.get('directory', config.install_dir)

        downloads = _section(data, 'downloads')
        config.node_installer_url = downloads.get('node_installer_url', config.node_installer_url)
        config.git_installer_url = downloads.get('git_installer_url', config.git_installer_url)
        try:
            config.download_timeout = max(1, int(downloads.get('timeout', config.download_timeout)))
        except (TypeError, ValueError):
            config.download_timeout = 60
        try:
            config.download_max_redirects = max(0, int(downloads.get('max_redirects', config.download_max_redirects)))
        except (TypeError, ValueError):
            config.download_max_redirects = 10

        installation = _section(data, 'installation')
        config.auto_approve = bool(installation.get('auto_approve', config.auto_approve))
        config.quiet_mode = bool(installation.get('quiet_mode', config.quiet_mode))

        application = _section(data, 'application')
        config.app_config_file = application.get('config_file', config.app_config_file)
        try:
            config.default_port = int(application.get('default_port', config.default_port))
        except (TypeError, ValueError):
            config.default_port = 8000

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for YAML export"""
        return {
            'repository': {
                'url': self.repo_url,
                'stable_branch': self.stable_branch,
                'staging_branch': self.staging_branch,
                'directory': self.install_dir,
            },
            'downloads': {
                'node_installer_url': self.node_installer_url,
                'git_installer_url': self.git_installer_url,
                'timeout': self.download_timeout,
                'max_redirects': self.download_max_redirects,
            },
            'installation': {
                'auto_approve': self.auto_approve,
                'quiet_mode': self.quiet_mode,
            },
            'application': {
                'config_file': self.app_config_file,
                'default_port': self.default_port,
            },
        }

    @property
    def install_path(self) -> Path:
        return Path(self.install_dir)

    @property
    def app_config_path(self) -> Path:
        return self.install_path / self.app_config_file

    def branch_for(self, name: str) -> str:
        """Resolve 'stable'/'staging' aliases to real branch names"""
        aliases = {'stable': self.stable_branch, 'staging': self.staging_branch}
        return aliases.get(name.lower(), name)


class ConfigManager:
    """Manage ST Installer configuration files"""

    DEFAULT_CONFIG_NAME = ".stinstaller.yml"

    @staticmethod
    def find_config(start_path: Optional[Path] = None) -> Optional[Path]:
        """
        Find .stinstaller.yml by walking up directory tree

        Args:
            start_path: Starting directory (default: current directory)

        Returns:
            Path to .stinstaller.yml or None if not found
        """
        current = (start_path or Path.cwd()).resolve()

        # Walk up directory tree
        while True:
            config_file = current / ConfigManager.DEFAULT_CONFIG_NAME
            if config_file.exists():
                return config_file
            if current == current.parent:
                return None
            current = current.parent

    @staticmethod
    def load_config(config_path: Optional[Path] = None) -> InstallerConfig:
        """
        Load configuration from .stinstaller.yml

        Args:
            config_path: Path to config file (default: search from current dir)

        Returns:
            InstallerConfig object
        """
        if config_path is None:
            config_path = ConfigManager.find_config()
            if config_path is None:
                return InstallerConfig()
        elif not config_path.exists():
            logger.warning("Config file %s not found, using defaults", config_path)
            return InstallerConfig()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            return InstallerConfig()

        if data is None:
            return InstallerConfig()
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping at the top level", config_path)
            return InstallerConfig()

        return InstallerConfig.from_dict(data)

    @staticmethod
    def save_config(config: InstallerConfig, config_path: Path) -> bool:
        """
        Save configuration to .stinstaller.yml

        Args:
            config: InstallerConfig object
            config_path: Path where to save

        Returns:
            True if successful
        """
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(
                    config.to_dict(),
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2
                )
            return True
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to save config to %s: %s", config_path, e)
            return False
