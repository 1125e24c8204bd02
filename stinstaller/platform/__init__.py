"""
ST Installer Platform Detection & Installation
OS detection, tool acquisition and system PATH registration
"""

from stinstaller.platform.detector import (
    OSType,
    PackageManager,
    PlatformDetector,
    PlatformInfo,
    is_elevated,
)

__all__ = [
    'OSType',
    'PackageManager',
    'PlatformDetector',
    'PlatformInfo',
    'is_elevated',
]
