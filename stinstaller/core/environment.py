#!/usr/bin/env python3
"""
ST Installer Environment Context
Process-wide facts gathered once at start-up and passed to every component
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from stinstaller.platform.detector import OSType, PlatformDetector, PlatformInfo


@dataclass
class EnvironmentContext:
    """
    Explicit replacement for global process state.

    Attributes:
        os_type: Operating system the installer runs on
        elevated: True when running as Administrator/root
        scratch_dir: Where downloaded installers are written
        platform_info: Full detection result, when available
        resolved_tools: Tool name -> executable path, filled in as tools are found
    """
    os_type: OSType
    elevated: bool
    scratch_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    platform_info: Optional[PlatformInfo] = None
    resolved_tools: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def detect(cls) -> 'EnvironmentContext':
        """Build the context for the running process"""
        info = PlatformDetector().detect()
        return cls(
            os_type=info.os_type,
            elevated=info.is_elevated,
            platform_info=info,
        )

    @property
    def is_windows(self) -> bool:
        return self.os_type == OSType.WINDOWS

    def expand(self, path: str) -> str:
        """Expand %VAR%/$VAR references in a configured path"""
        return os.path.expandvars(path)
