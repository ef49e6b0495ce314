"""Logging configuration for the application."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import get_config


class DetailsFormatter(logging.Formatter):
    """Appends the ``details`` dict passed via ``extra`` to the message."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        details = getattr(record, "details", None)
        if details:
            pairs = ", ".join(f"{key}={value}" for key, value in details.items())
            message = f"{message} [{pairs}]"
        return message


def setup_logger(
    name: str,
    file_key: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Setup a logger with console and optional rotating file output.

    Args:
        name: Logger name
        file_key: Attribute of ``logging.files`` naming the log file
        level: Optional log level (overrides config)

    Returns:
        Configured logger instance
    """
    config = get_config()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, (level or config.logging.level).upper()))

    # Handlers are attached once per process
    if logger.handlers:
        return logger

    formatter = DetailsFormatter(config.logging.format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Production containers log to stdout only.
    log_file = getattr(config.logging.files, file_key) if file_key else None
    if log_file and not config.is_production:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_transaction_logger() -> logging.Logger:
    """Sales, receipts, item and expense changes."""
    return setup_logger("transactions", "transactions")


def get_store_logger() -> logging.Logger:
    """Snapshot refreshes, re-sync jobs and the API server."""
    return setup_logger("store", "store")


def get_error_logger() -> logging.Logger:
    """Failed commits and resyncs, with their details."""
    return setup_logger("error", "error", "ERROR")


def get_api_logger() -> logging.Logger:
    return setup_logger("api")


def get_insights_logger() -> logging.Logger:
    return setup_logger("insights")


def get_scheduler_logger() -> logging.Logger:
    """APScheduler's own logger, so job errors in its threads are visible."""
    return setup_logger("apscheduler")
