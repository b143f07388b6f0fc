"""
Centralized logging configuration with colored output
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import colorlog


PACKAGE_LOGGER_PREFIX = "gg_deploy"


def logs_dir() -> Path:
    """
    Directory for log files: `<gg_deploy_home>/logs`, taken from the same
    settings (environment and .env) as the credential file.

    Invalid settings fall back to the default home; they are reported when
    a command loads its settings.
    """
    from pydantic import ValidationError

    from gg_deploy.utils.config import Settings

    try:
        return Settings().logs_dir
    except ValidationError:
        return Settings.model_fields["gg_deploy_home"].default / "logs"


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True
) -> logging.Logger:
    """
    Set up a logger with colored console output and optional file logging.

    Console output goes to stderr so that command output on stdout
    (including JSON) is never interleaved with log lines.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file name (saved in the logs directory)
        console: Whether to output to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    # Console handler with colored output
    if console:
        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))

        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(blue)s[%(name)s]%(reset)s %(message)s",
            datefmt=None,
            reset=True,
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    # File handler
    if log_file:
        directory = logs_dir()
        directory.mkdir(parents=True, exist_ok=True)
        file_path = directory / log_file
        file_handler = logging.FileHandler(file_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # Package loggers own their handlers
    logger.propagate = False

    return logger


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    """
    Get or create a logger with default configuration.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Console logging level

    Returns:
        Configured logger instance
    """
    # Create a daily log file
    today = datetime.now().strftime("%Y-%m-%d")
    log_file = f"gg_deploy_{today}.log"

    return setup_logger(
        name=name,
        level=level,
        log_file=log_file,
        console=True
    )


def set_log_level(level: str) -> None:
    """
    Change the console level of every package logger created so far.

    File handlers keep logging at DEBUG.

    Args:
        level: Logging level name
    """
    numeric_level = getattr(logging, level.upper())

    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not isinstance(candidate, logging.Logger):
            continue
        if not (name == PACKAGE_LOGGER_PREFIX or name.startswith(f"{PACKAGE_LOGGER_PREFIX}.") or name in ("__main__", "main")):
            continue
        for handler in candidate.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(numeric_level)
