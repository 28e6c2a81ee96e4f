"""Shared utility functions for fx-ingest."""

import logging
from datetime import datetime
from pathlib import Path

import pytz


def setup_logger(
    name: str, log_file: Path | None = None, level: int | str = logging.INFO
) -> logging.Logger:
    """Set up logger with console and file handlers.

    Handlers are attached only once per logger name, so pipelines that are
    constructed repeatedly do not print every message several times.

    Args:
        name: Logger name
        log_file: Optional path to log file
        level: Logging level (int constant or string name like 'DEBUG', 'INFO')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Convert string level to int if needed
    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        logger.setLevel(numeric_level)
    else:
        logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def to_utc(dt: datetime, from_tz: str = "UTC") -> datetime:
    """Convert datetime to UTC.

    Naive datetimes are interpreted in ``from_tz`` (UTC unless told otherwise).
    """
    if dt.tzinfo is None:
        dt = pytz.timezone(from_tz).localize(dt)
    return dt.astimezone(pytz.UTC)


def is_weekend(dt: datetime) -> bool:
    """Check if datetime falls on a Saturday or Sunday in UTC."""
    return to_utc(dt).weekday() >= 5


def to_naive_utc(dt: datetime) -> datetime:
    """Return a naive datetime holding the UTC wall-clock time of ``dt``.

    The storage layer keeps TIMESTAMP columns without a zone, always in UTC.
    """
    return to_utc(dt).replace(tzinfo=None)


def from_naive_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to a naive datetime read back from storage."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)
