#!/usr/bin/env python3
"""
ST Installer Workflows
Dependency check, install/update and branch switch as the CLI runs them
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from stinstaller.config import InstallerConfig
from stinstaller.core.branch import BranchSwitchOrchestrator
from stinstaller.core.classifier import ErrorKind, classify
from stinstaller.core.repository import GitClient, RepositoryHandle, is_repository
from stinstaller.core.runner import CommandResult, CommandRunner
from stinstaller.core.sync import RepositorySyncEngine, SyncResult
from stinstaller.platform.acquisition import AcquisitionChainResolver
from stinstaller.platform.requirements import AcquisitionOutcome, ToolRequirement

logger = logging.getLogger(__name__)


class ToolUnavailableError(Exception):
    """A hard prerequisite is missing and could not be installed"""

    def __init__(self, requirement: ToolRequirement, outcome: Optional[AcquisitionOutcome] = None):
        self.requirement = requirement
        self.outcome = outcome
        if outcome is None:
            reason = "installation was declined"
        else:
            reason = outcome.diagnostic_text or "installation failed"
        super().__init__(f"{requirement.name} is not available: {reason}")

    @property
    def manual_url(self) -> str:
        return self.requirement.manual_url


def check_dependencies(
    resolver: AcquisitionChainResolver,
    requirements: List[ToolRequirement],
    confirm: Optional[Callable[[ToolRequirement], bool]] = None,
) -> List[AcquisitionOutcome]:
    """
    Make every requirement runnable, in order

    Args:
        resolver: Acquisition chain to install missing tools with
        requirements: Tools to check
        confirm: Asked before installing a missing tool; None means yes

    Returns:
        One AcquisitionOutcome per requirement

    Raises:
        ToolUnavailableError: A tool is missing and was declined or failed to install
    """
    outcomes = []
    for requirement in requirements:
        if not resolver.is_present(requirement) and confirm is not None and not confirm(requirement):
            raise ToolUnavailableError(requirement)

        outcome = resolver.acquire(requirement)
        outcomes.append(outcome)
        if not outcome.succeeded:
            raise ToolUnavailableError(requirement, outcome)
    return outcomes


def restart_recommended(outcomes: List[AcquisitionOutcome]) -> bool:
    """True when a tool was installed during this run"""
    return any(outcome.newly_installed for outcome in outcomes)


@dataclass
class InstallReport:
    """What install_or_update did"""
    directory: Path
    cloned: bool = False
    clone_result: Optional[CommandResult] = None
    clone_error_kind: ErrorKind = ErrorKind.NONE
    sync: Optional[SyncResult] = None
    npm: Optional[CommandResult] = None
    notes: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        if self.clone_result is not None and not self.clone_result.ok:
            return False
        if self.sync is not None and not self.sync.ok:
            return False
        return self.npm is None or self.npm.ok


def run_npm_install(runner: CommandRunner, directory: Path) -> CommandResult:
    """npm install inside directory, output streamed to the terminal"""
    logger.info("Running npm install in %s", directory)
    result = runner.run(['npm', 'install'], cwd=Path(directory), stream=True)
    if not result.ok:
        logger.error("npm install failed with exit code %s", result.returncode)
    return result


def install_or_update(
    config: InstallerConfig,
    runner: CommandRunner,
    engine: Optional[RepositorySyncEngine] = None,
) -> InstallReport:
    """
    Clone the stable branch, or update the existing clone, then npm install

    Args:
        config: Installer settings (repository URL, branches, directory)
        runner: Process runner
        engine: Sync engine to update with (default: one over runner)

    Returns:
        InstallReport; npm runs only when the git step succeeded
    """
    engine = engine or RepositorySyncEngine(runner)
    directory = config.install_path.resolve()
    report = InstallReport(directory)

    if not is_repository(directory):
        logger.info("Cloning %s (%s) into %s", config.repo_url, config.stable_branch, directory)
        result = GitClient(runner).clone(config.repo_url, config.stable_branch, directory)
        report.cloned = True
        report.clone_result = result
        if not result.ok:
            report.clone_error_kind = classify(result.output)
            logger.error("git clone failed: %s", result.output)
            return report
    else:
        handle = RepositoryHandle.open(directory, runner)
        branch = handle.current_branch
        if branch is None:
            branch = config.stable_branch
            report.notes.append(f"Current branch unknown, updating {branch}")
        report.sync = engine.sync(handle, branch)
        if not report.sync.ok:
            return report

    report.npm = run_npm_install(runner, directory)
    return report


def switch_branch(
    config: InstallerConfig,
    runner: CommandRunner,
    target: str,
    engine: Optional[RepositorySyncEngine] = None,
) -> InstallReport:
    """
    Switch an existing clone to target ('stable', 'staging' or a branch name)

    Raises:
        FileNotFoundError: There is no clone to switch
    """
    directory = config.install_path.resolve()
    if not is_repository(directory):
        raise FileNotFoundError(f"No SillyTavern clone found in {directory}; install it first")

    engine = engine or RepositorySyncEngine(runner)
    branch = config.branch_for(target)
    handle = RepositoryHandle.open(directory, runner)
    report = InstallReport(directory)
    report.sync = BranchSwitchOrchestrator(engine).switch_to(handle, branch)
    if report.sync.ok:
        report.npm = run_npm_install(runner, directory)
    return report
