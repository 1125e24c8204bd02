"""
ST Installer - SillyTavern Installer & Configurator
Provisions git and Node.js, then installs, updates and switches SillyTavern
branches while keeping local edits.
"""

__version__ = "1.2.0"
__author__ = "ST Installer contributors"
__license__ = "AGPL-3.0-or-later"

__all__ = ["__version__"]
