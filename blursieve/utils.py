"""
Utility functions for the blur filter.

Includes logging setup and formatting helpers.
"""

import logging
import sys
from pathlib import Path

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(config: dict) -> logging.Logger:
    """
    Configure logging for console and optional file output.

    The console handler writes to stderr: stdout carries the data stream.

    Args:
        config: Configuration dictionary containing logging settings

    Returns:
        Configured package logger
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level') or 'WARNING'
    console_level = log_config.get('console_level') or log_level
    file_level = log_config.get('file_level') or 'DEBUG'
    log_format = log_config.get('format') or DEFAULT_LOG_FORMAT
    date_format = log_config.get('date_format') or DEFAULT_DATE_FORMAT

    logger = logging.getLogger('blursieve')
    logger.setLevel(logging.DEBUG)  # Capture all levels, filters applied to handlers
    logger.propagate = False

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    logger.addHandler(console_handler)

    log_file = log_config.get('log_file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        logger.addHandler(file_handler)
        logger.debug(f"Log file: {log_file}")

    logger.debug(f"Logging initialized - Console: {console_level}, File: "
                 f"{file_level if log_file else 'disabled'}")

    return logger


def format_time(seconds: float) -> str:
    """
    Format seconds into human-readable time string.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string (e.g., "1h 23m 45s" or "12.3s")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = seconds % 60
        return f"{hours}h {minutes}m {secs:.0f}s"


def format_bytes(bytes_count: int) -> str:
    """
    Format bytes into human-readable size string.

    Args:
        bytes_count: Number of bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "2.3 GB")
    """
    size = float(bytes_count)
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"
