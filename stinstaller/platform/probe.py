#!/usr/bin/env python3
"""
ST Installer Tool Probe
Checks whether a required tool is runnable right now
"""

import logging

from stinstaller.core.runner import CommandRunner
from stinstaller.platform.requirements import ToolRequirement

logger = logging.getLogger(__name__)


class ToolProbe:
    """Runs a requirement's probe commands; any non-zero exit means absent"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def probe(self, requirement: ToolRequirement) -> bool:
        """True when every probe command of requirement exits 0"""
        for cmd in requirement.probe_commands:
            result = self.runner.run(list(cmd))
            if not result.ok:
                logger.debug("Probe %s failed (%s)", ' '.join(cmd), result.returncode)
                return False
        return True
