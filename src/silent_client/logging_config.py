"""
Logging setup for silent-client.

All loggers live under the "silent_client" namespace so one call to
setup_logging() configures the whole package.
"""

import logging
from pathlib import Path
from typing import Optional

from .settings import get_log_path

ROOT_LOGGER = "silent_client"
DEFAULT_LOG_DIR = get_log_path().parent
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under silent_client."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Existing handlers are removed first so repeated calls don't duplicate
    output.

    Args:
        level: Log level for the package logger
        log_file: Optional file to append plain-text records to
        console: Whether to log to the console
        rich_console: Use rich's handler for the console when available
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if console:
        handler = None
        if rich_console:
            try:
                from rich.logging import RichHandler
                handler = RichHandler(show_path=False, rich_tracebacks=True)
                handler.setFormatter(logging.Formatter("%(message)s"))
            except ImportError:
                handler = None
        if handler is None:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def setup_daemon_logging(log_file: Optional[Path] = None, verbose: bool = False) -> logging.Logger:
    """Configure logging for the foreground daemon (console + file)."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        log_file=log_file or get_log_path(),
        console=True,
    )
    return get_logger("daemon")
