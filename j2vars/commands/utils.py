"""Shared utilities for CLI commands"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# stdout carries the rendered template; everything else goes to stderr.
console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the j2vars CLI.

    Log levels:
    - Normal: Only warnings/errors shown
    - Verbose (-v): INFO level - shows resolution summary and failures
    - Debug (J2VARS_DEBUG=1): DEBUG level - shows every dispatch and command
    """
    debug = bool(os.environ.get("J2VARS_DEBUG"))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=console,
        show_time=verbose or debug,
        show_path=debug,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("j2vars")
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False
