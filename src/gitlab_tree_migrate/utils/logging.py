"""Logging utilities for GitLab Tree Migration Tool."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

FILE_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss} | '
    '{level: <8} | '
    '{name}:{function}:{line} | '
    '{message}'
)


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    error_log_file: Optional[str] = None,
) -> None:
    """Setup logging configuration using loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional run log file path (appended to)
        log_format: Optional custom console log format
        error_log_file: Optional error log file path, receives ERROR and above
    """
    # Remove default handler
    logger.remove()

    # Default format if not provided
    if log_format is None:
        log_format = (
            '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
            '<level>{level: <8}</level> | '
            '<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | '
            '<level>{message}</level>'
        )

    # Add console handler
    logger.add(
        sys.stderr,
        format=log_format,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        _add_file_sink(log_file, level)

    if error_log_file:
        _add_file_sink(error_log_file, 'ERROR')

    logger.debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.info(f'Log file: {log_file}')


def _add_file_sink(path: str, level: str) -> None:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # File sinks append, never truncate
    logger.add(
        str(log_path),
        format=FILE_FORMAT,
        level=level,
        mode='a',
        rotation='10 MB',
        retention='30 days',
        compression='gz',
        backtrace=True,
        diagnose=False,
    )
