"""
Logging setup and configuration utilities.

This module provides centralized logging configuration using loguru with
support for file rotation. Modules keep logging through the standard
``logging`` module; an intercept handler forwards those records to loguru.
"""

import logging
import sys
from pathlib import Path
from typing import Union

from loguru import logger as loguru_logger

from ..config.models import LoggingConfig


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Union[str, int] = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside of the logging module
        frame = logging.currentframe()
        depth = 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage())


def setup_logging(config: LoggingConfig) -> None:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration
    """
    _setup_loguru_logging(config)
    _intercept_standard_logging(config)


def _setup_loguru_logging(config: LoggingConfig) -> None:
    """Setup logging using loguru."""
    # Remove default handler
    loguru_logger.remove()

    # Console logging
    if config.console_enabled:
        loguru_logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                   "<level>{level: <8}</level> | "
                   "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                   "<level>{message}</level>",
            level=config.level.upper(),
            colorize=True,
            backtrace=True,
            diagnose=False
        )

    # File logging
    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        loguru_logger.add(
            log_dir / "portswitch.log",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
                   "{name}:{function}:{line} - {message}",
            level=config.level.upper(),
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=False
        )


def _intercept_standard_logging(config: LoggingConfig) -> None:
    """Route records from the standard logging module through loguru."""
    root_logger = logging.getLogger()
    root_logger.handlers = [InterceptHandler()]
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
