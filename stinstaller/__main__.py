#!/usr/bin/env python3
"""
ST Installer module entry point
Allows running: python3 -m stinstaller
"""

from stinstaller.cli import main

if __name__ == '__main__':
    main()
