#!/usr/bin/env python3
"""
ST Installer Command Runner
Runs external programs and captures their output
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Exit status reported when the executable cannot be started at all
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


@dataclass
class CommandResult:
    """Exit status and captured text of one external invocation"""
    command: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, the way a terminal would show them"""
        parts = [text.strip() for text in (self.stdout, self.stderr) if text and text.strip()]
        return '\n'.join(parts)


class CommandRunner:
    """
    Blocking process runner used by every component that talks to an
    external tool. Subclass and override run() to script tool behaviour.
    """

    def run(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> CommandResult:
        """
        Run a command and wait for it to exit

        Args:
            command: Program and arguments
            cwd: Working directory (default: current directory)
            env: Full environment for the child (default: inherit)
            stream: Let output go straight to the terminal instead of capturing it

        Returns:
            CommandResult; never raises for a missing or unstartable program
        """
        cmd = [str(part) for part in command]
        # shell=False cannot see PATHEXT on Windows (npm.cmd), so resolve first
        executable = shutil.which(cmd[0]) if cmd else None
        argv = [executable] + cmd[1:] if executable else cmd

        logger.debug("Running: %s", ' '.join(cmd))
        try:
            if stream:
                completed = subprocess.run(argv, cwd=cwd, env=env, check=False, shell=False)
                return CommandResult(cmd, completed.returncode)

            completed = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                check=False,
                shell=False,
            )
        except FileNotFoundError as e:
            logger.debug("Executable not found: %s", cmd[0] if cmd else '')
            return CommandResult(cmd, EXIT_NOT_FOUND, '', str(e))
        except OSError as e:
            logger.debug("Could not start %s: %s", cmd[0] if cmd else '', e)
            return CommandResult(cmd, EXIT_NOT_EXECUTABLE, '', str(e))

        result = CommandResult(cmd, completed.returncode, completed.stdout or '', completed.stderr or '')
        logger.debug("Exit code %s from %s", result.returncode, cmd[0])
        return result


@dataclass
class RecordingRunner(CommandRunner):
    """
    Runner that answers from a script of canned results and records every
    command it was asked to run. Handy for dry runs and tests.
    """
    responses: Dict[str, CommandResult] = field(default_factory=dict)
    history: List[List[str]] = field(default_factory=list)

    def run(self, command, cwd=None, env=None, stream=False) -> CommandResult:
        cmd = [str(part) for part in command]
        self.history.append(cmd)
        key = ' '.join(cmd)
        # Longest matching prefix wins
        for prefix in sorted(self.responses, key=len, reverse=True):
            if key == prefix or key.startswith(prefix + ' '):
                canned = self.responses[prefix]
                return CommandResult(cmd, canned.returncode, canned.stdout, canned.stderr)
        return CommandResult(cmd, 0)
