"""Logging configuration for agm."""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_LEVEL = "DEBUG"
LOG_LEVEL_ENV = "AGM_LOG_LEVEL"

# Global flag to track if logging has been initialized
_logging_initialized = False
_log_file_path = None


def setup_logger(
    log_dir: Union[str, Path],
    log_level: Optional[str] = None,
    log_to_console: bool = False,
) -> None:
    """Configure the logging system globally.

    Called once from the CLI entry point when --verbose is given. Without it
    no handler is installed and module loggers emit nothing.

    Args:
        log_dir: Directory to store log files (normally <agm home>/logs)
        log_level: Logging level name; falls back to $AGM_LOG_LEVEL, then DEBUG
        log_to_console: Whether to also log warnings to stderr
    """
    global _logging_initialized, _log_file_path

    if _logging_initialized:
        return

    if log_level is None:
        log_level = os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)

    level = getattr(logging, log_level.upper(), logging.DEBUG)
    logging.root.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True, parents=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_path / f"agm_{timestamp}.log"
    _log_file_path = str(log_file)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logging.root.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        logging.root.addHandler(console_handler)

    _logging_initialized = True

    logging.info(f"Logging initialized. Level: {log_level}, File: {_log_file_path}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def get_log_file_path() -> Optional[str]:
    """Path to the current log file, or None if file logging is off."""
    return _log_file_path
