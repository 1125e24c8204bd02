#!/usr/bin/env python3
"""
ST Installer Acquisition Chain
Makes a required tool runnable: probe first, then try each acquisition
strategy in order until a probe succeeds
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from stinstaller.core.classifier import ErrorKind, classify
from stinstaller.core.environment import EnvironmentContext
from stinstaller.platform.download import DownloadError
from stinstaller.platform.installers.base import PlatformOps
from stinstaller.platform.path_registry import PathRegistration, prepend_to_process_path
from stinstaller.platform.requirements import (
    AcquisitionOutcome,
    AcquisitionStrategy,
    DirectDownloadInstall,
    PackageManagerInstall,
    ToolRequirement,
)

logger = logging.getLogger(__name__)


class AcquisitionChainResolver:
    """
    Ordered fallback over acquisition strategies.

    Package manager strategies run only when the platform allows them with
    the current privileges and the manager itself answers its probe. A
    direct download runs when elevated, or when no package manager
    completed an install.
    """

    def __init__(self, context: EnvironmentContext, ops: PlatformOps):
        self.context = context
        self.ops = ops

    def is_present(self, requirement: ToolRequirement) -> bool:
        return self.ops.probe(requirement)

    def _resolve_executable(self, requirement: ToolRequirement) -> Optional[str]:
        path = shutil.which(requirement.executable)
        if path:
            self.context.resolved_tools[requirement.name] = path
        return path

    def _failure(
        self,
        requirement: ToolRequirement,
        strategy: Optional[AcquisitionStrategy],
        diagnostic: str,
        kind: ErrorKind,
    ) -> AcquisitionOutcome:
        return AcquisitionOutcome(
            requirement=requirement.name,
            strategy_used=strategy,
            succeeded=False,
            diagnostic_text=diagnostic,
            error_kind=kind,
        )

    def acquire(self, requirement: ToolRequirement) -> AcquisitionOutcome:
        """
        Ensure requirement is runnable

        Args:
            requirement: Tool to make available

        Returns:
            AcquisitionOutcome; on failure the diagnostics of the last attempt
        """
        if self.is_present(requirement):
            logger.info("%s is already installed", requirement.name)
            return AcquisitionOutcome(
                requirement=requirement.name,
                strategy_used=None,
                succeeded=True,
                resolved_executable_path=self._resolve_executable(requirement),
            )

        last = self._failure(
            requirement,
            None,
            f"No way to install {requirement.name} automatically on this system. "
            f"Install it manually from {requirement.manual_url}",
            ErrorKind.NOT_FOUND,
        )
        attempts = 0
        package_manager_installed = False
        registrations: List[PathRegistration] = []

        for strategy in requirement.strategies:
            if isinstance(strategy, PackageManagerInstall):
                if not self.ops.allows_package_manager():
                    logger.info("Skipping %s with the current privileges", strategy.manager_name)
                    continue
                if not self.ops.has_package_manager(strategy.manager_name):
                    logger.debug("%s is not available", strategy.manager_name)
                    continue

                attempts += 1
                result = self.ops.install_package(strategy)
                if not result.ok:
                    last = self._failure(requirement, strategy, result.output, classify(result.output))
                    continue
                package_manager_installed = True

            elif isinstance(strategy, DirectDownloadInstall):
                if package_manager_installed and not self.context.elevated:
                    # Installed, just not visible to this process yet
                    break

                attempts += 1
                try:
                    result = self.ops.download_and_run(strategy)
                except DownloadError as e:
                    logger.error("Downloading %s failed: %s", requirement.name, e)
                    last = self._failure(requirement, strategy, str(e), ErrorKind.NETWORK)
                    continue
                if not result.ok:
                    last = self._failure(
                        requirement,
                        strategy,
                        result.output or f"Installer exited with code {result.returncode}",
                        classify(result.output),
                    )
                    continue
                registrations.extend(self._expose_install_paths(strategy))

            else:
                logger.warning("Unknown acquisition strategy %r", strategy)
                continue

            if self.is_present(requirement):
                logger.info("%s installed via %s", requirement.name, strategy.describe())
                return AcquisitionOutcome(
                    requirement=requirement.name,
                    strategy_used=strategy,
                    succeeded=True,
                    resolved_executable_path=self._resolve_executable(requirement),
                    attempts=attempts,
                    newly_installed=True,
                    path_registrations=registrations,
                )

            last = self._failure(
                requirement,
                strategy,
                f"{requirement.name} was installed via {strategy.describe()} but is not on PATH yet. "
                "Open a new terminal and run the installer again.",
                ErrorKind.NOT_FOUND,
            )
            last.newly_installed = True

        last.attempts = attempts
        last.path_registrations = registrations
        return last

    def _expose_install_paths(self, strategy: DirectDownloadInstall) -> List[PathRegistration]:
        """
        Put the installer's well-known directories on PATH: permanently when
        elevated, for this process in every case
        """
        registrations: List[PathRegistration] = []
        for directory in strategy.common_install_paths:
            expanded = self.context.expand(directory)
            if not Path(expanded).is_dir():
                continue
            prepend_to_process_path(expanded)
            if self.context.elevated:
                registration = self.ops.register_path(expanded)
                if not registration.ok:
                    logger.warning("Could not add %s to PATH: %s", expanded, registration.message)
                registrations.append(registration)
        return registrations
