"""
Logging configuration utilities.

The API server and the CLI share one log format so that authorization
lifecycle lines (created / superseded / revoked / purged) read the same
wherever they are emitted.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that drown out lifecycle messages at DEBUG
NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "multipart")


def resolve_level(level: Union[int, str]) -> int:
    """
    Turn a level name such as "debug" or "INFO" into a logging constant.

    Unknown names fall back to INFO rather than failing application startup.
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    name: str = None,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    format_string: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Set up logging with optional file and console handlers.

    Args:
        name: Logger name (defaults to the root logger if None)
        level: Logging level, as a constant or a level name
        log_file: Path to log file (optional)
        console: Whether to add a stdout handler (default: True)
        format_string: Log message format

    Returns:
        Configured logger instance
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates on app reload
    logger.handlers.clear()

    formatter = logging.Formatter(format_string)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    return logger


def configure_basic_logging(
    level: Union[int, str] = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
) -> None:
    """
    Configure basic logging to stdout.

    Used by the CLI entrypoints, which run outside the application factory.
    """
    logging.basicConfig(
        level=resolve_level(level),
        format=format_string,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
