"""
Centralized Logging Configuration
==================================
Provides consistent logging across the analysis engine.

Design Decisions:
- Uses Python's built-in logging
- Logs to the console, optionally to a file as well
- Includes timestamps and module names for traceability

Usage:
    from resource_ml.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Aggregation started")
"""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Sequence

from .constants import LOGGING_CONFIG


def get_logger(
    name: str,
    log_file: Optional[str] = None,
    level: int = None
) -> logging.Logger:
    """
    Create and configure a logger instance.

    Parameters
    ----------
    name : str
        Logger name (typically __name__ of the calling module)
    log_file : str, optional
        Path to log file. If None, logs only to console.
    level : int, optional
        Logging level. Default from LOGGING_CONFIG.

    Returns
    -------
    logging.Logger
        Configured logger instance

    Example
    -------
    >>> logger = get_logger(__name__)
    >>> logger.info("Budget forecasting started")
    2026-02-04 10:30:00 | INFO     | resource_ml.services.budget | Budget forecasting started
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    if level is None:
        level = getattr(logging, LOGGING_CONFIG["level"], logging.INFO)

    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt=LOGGING_CONFIG["format"],
        datefmt=LOGGING_CONFIG["datefmt"]
    )

    # Console handler - always enabled
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler - if log_file specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def log_series_summary(
    logger: logging.Logger,
    label: str,
    series_count: int,
    window: Sequence[str]
) -> None:
    """
    Log the size and month range of a batch of monthly series.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance
    label : str
        What the series were grouped by (e.g. "item", "kitchen")
    series_count : int
        Number of series produced
    window : Sequence[str]
        Ordered month labels of the window
    """
    if len(window) == 0:
        logger.info(f"Built {series_count} {label} series over an empty window")
        return

    logger.info(
        f"Built {series_count} {label} series covering "
        f"{window[0]} to {window[-1]} ({len(window)} months)"
    )


class LogContext:
    """
    Context manager for structured logging of operations.

    Usage:
        with LogContext(logger, "Forecasting budget"):
            # ... operation code ...
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = (datetime.now() - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.info(f"Completed: {self.operation} ({elapsed:.2f}s)")
        else:
            self.logger.error(f"Failed: {self.operation} ({elapsed:.2f}s) - {exc_val}")

        # Don't suppress exceptions
        return False
