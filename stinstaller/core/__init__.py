"""
ST Installer Core
Process runner, failure classification and the git workflows
"""

from stinstaller.core.branch import BranchSwitchOrchestrator
from stinstaller.core.classifier import ErrorKind, classify
from stinstaller.core.repository import GitClient, RepositoryHandle
from stinstaller.core.runner import CommandResult, CommandRunner
from stinstaller.core.sync import RepositorySyncEngine, SyncResult, SyncStatus

__all__ = [
    'BranchSwitchOrchestrator',
    'CommandResult',
    'CommandRunner',
    'ErrorKind',
    'GitClient',
    'RepositoryHandle',
    'RepositorySyncEngine',
    'SyncResult',
    'SyncStatus',
    'classify',
]
