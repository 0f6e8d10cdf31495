"""Shared utilities for the CLI command modules.

Provides the Rich console instance and logging setup.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from rich.console import Console

from .. import LOG_DIR

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("synctools.cli")

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False, log_dir: str = LOG_DIR) -> Path:
    """Configure file and console logging for one invocation.

    The file log always records INFO and above. The console shows INFO
    with --verbose, errors only with --quiet, and warnings otherwise.

    Args:
        verbose: Show informational messages on the console.
        quiet: Show only errors on the console.
        log_dir: Directory for sync.log.

    Returns:
        Path of the log file.
    """
    root = logging.getLogger("synctools")
    root.setLevel(logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    log_path = Path(log_dir).expanduser()
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / "sync.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    if verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(console_handler)

    return log_file
