#!/usr/bin/env python3
"""
ST Installer Logging Setup
Routes library log records to a rich handler on stderr
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = 'stinstaller-rich'


def configure_logging(verbose: bool = False) -> logging.Logger:
    """
    Install a RichHandler on the package logger

    Args:
        verbose: DEBUG instead of WARNING

    Returns:
        The configured 'stinstaller' logger
    """
    logger = logging.getLogger('stinstaller')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        show_time=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
