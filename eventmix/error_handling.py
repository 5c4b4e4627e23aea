"""
Error handling & logging infrastructure.

Provides the logger setup used across the package and the exception types
that separate fatal generation failures from soft, logged ones.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path


LOGGER_NAME = "eventmix"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def setup_logging(log_dir: Path, log_level: str = "INFO") -> logging.Logger:
    """
    Route the eventmix logger to a daily log file and stdout.

    Calling it again replaces the handlers instead of stacking new ones,
    so a process can switch log directory or level between runs.

    Args:
        log_dir: Directory for eventmix_YYYYMMDD.log (created if missing)
        log_level: Level name for the logger; the file always records DEBUG

    Returns:
        The configured logger
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(_level(log_level))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = logging.FileHandler(
        log_dir / f"eventmix_{datetime.now().strftime('%Y%m%d')}.log", encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_level(log_level))

    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger() -> logging.Logger:
    """The eventmix logger; console-only at INFO until setup_logging() runs."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


class ConfigurationError(Exception):
    """Exception for configuration-related errors."""
    pass


class GenerationError(Exception):
    """A fatal condition that aborts a playlist generation run."""
    pass


class EventNotFoundError(GenerationError):
    """The event to generate for does not exist."""
    pass


class OwnerNotFoundError(GenerationError):
    """The event has no owner membership (or more than one)."""
    pass


class OwnerCredentialError(GenerationError):
    """The owner's access token could not be refreshed."""
    pass


class PlaylistCreationError(GenerationError):
    """The remote playlist could not be created."""
    pass


class GenerationInProgressError(GenerationError):
    """Another generation run currently holds the event."""
    pass
