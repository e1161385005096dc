"""Logging configuration for the relay.

This module provides centralized logging configuration using Loguru.
It sets up logging to the console and, optionally, to a rotating file.
Library modules only import ``logger`` from loguru; sinks are installed
once by the CLI through ``setup_logging``.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path.home() / ".socks5-relay" / "logs"
LOG_FILE_NAME = "proxy.log"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(*, debug: bool = False, log_dir: Path | None = LOG_DIR) -> Path | None:
    """Install the console sink and, unless ``log_dir`` is None, the file sink.

    Args:
        debug: Lower the console level from INFO to DEBUG
        log_dir: Directory for the rotating log file, or None for console only

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if debug else "INFO",
        backtrace=debug,
        diagnose=debug,
    )

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    logger.add(
        log_file,
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        format=FILE_FORMAT,
        level="DEBUG",
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )
    return log_file


__all__ = ["LOG_DIR", "logger", "setup_logging"]
