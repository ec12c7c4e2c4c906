"""Logging configuration using loguru"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Threshold names accepted by setup_logging; "off" silences the console
LEVELS = {
    "off": None,
    "error": "ERROR",
    "warning": "WARNING",
    "info": "INFO",
    "debug": "DEBUG",
}

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    name: str = "scrapekit",
) -> None:
    """
    Configure loguru for scraper runs.

    Args:
        verbose: Shortcut for level="debug"
        log_file: Optional file path for log output
        level: Console threshold, one of LEVELS (default "info")
        log_dir: Write ``<name>.log`` into this directory when no log_file is given
        name: Log file stem used with log_dir
    """
    if level is None:
        level = "debug" if verbose else "info"
    if level not in LEVELS:
        raise ValueError(f"unknown log level {level!r}, expected one of {', '.join(LEVELS)}")

    logger.remove()

    # Console on stderr so stdout stays clean for command output
    console_level = LEVELS[level]
    if console_level is not None:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=console_level, colorize=True)

    if log_file is None and log_dir is not None:
        log_file = Path(log_dir) / f"{name}.log"

    # File handler with rotation
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,  # Thread-safe
        )
        logger.info(f"Logging to file: {log_file}")
