"""Logging configuration for the calendar service.

Other modules simply call ``logging.getLogger(__name__)``; this module only
configures the ``calendar_service`` logger once at process startup.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

LOGGER_NAME = "calendar_service"

ENV_LOCAL = "local"
ENV_DEV = "dev"
ENV_PROD = "prod"

_DEFAULT_LEVELS = {
    ENV_LOCAL: "DEBUG",
    ENV_DEV: "DEBUG",
    ENV_PROD: "INFO",
}


def setup_logging(
    env: str = ENV_LOCAL,
    level: str | None = None,
    log_file: Path | None = None,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        env: Deployment environment (local, dev, prod); picks the default level
        level: Explicit logging level, overriding the environment default
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    level = (level or _DEFAULT_LEVELS.get(env, "INFO")).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level))

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger


def redact_dsn(dsn: str) -> str:
    """Return *dsn* with any password replaced by ``***``, safe for logs."""
    parts = urlsplit(dsn)
    if parts.password is None:
        return dsn
    netloc = parts.netloc.rsplit("@", 1)[1]
    user = parts.username or ""
    return urlunsplit(parts._replace(netloc=f"{user}:***@{netloc}"))
