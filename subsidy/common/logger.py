"""Logging setup for the subsidy engine.

Two loggers matter:

* ``subsidy``: operational messages from every module (children created
  with ``logging.getLogger(__name__)`` propagate here).
* ``subsidy.audit``: one line per committed transition or document change.
  It can be routed to its own rotating file so the trail survives even
  when console output is discarded.

Timestamps are ISO 8601 in both.
"""

import logging
import logging.handlers
import os
from typing import List, Optional

ROOT_LOGGER_NAME = "subsidy"
AUDIT_LOGGER_NAME = "subsidy.audit"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
AUDIT_FORMAT = "%(asctime)s %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _build_handlers(
    name: str,
    log_dir: str,
    formatter: logging.Formatter,
    file_logging: bool,
    console_logging: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))
    if console_logging:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logger(
    name: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    log_format: Optional[str] = None,
    file_logging: bool = True,
    console_logging: bool = True,
    max_bytes: int = MAX_LOG_BYTES,
    backup_count: int = LOG_BACKUPS,
) -> logging.Logger:
    """Attach file and/or console handlers to the named logger.

    Calling it again for a logger that already has handlers only updates
    the level, so repeated imports of the app do not duplicate output.

    Args:
        name: Logger name, usually ``subsidy`` or ``subsidy.audit``
        log_dir: Directory for ``<name>.log`` when file logging is on
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (any case)
        log_format: Format string, defaults to ``DEFAULT_FORMAT``
        file_logging: Write to a rotating file
        console_logging: Write to stderr
        max_bytes: Rotation size
        backup_count: Rotated files kept

    Raises:
        ValueError: If the level is unknown
    """
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}")

    logger = logging.getLogger(name)
    logger.setLevel(level_upper)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=ISO_DATE_FORMAT)
    for handler in _build_handlers(
        name, log_dir, formatter, file_logging, console_logging, max_bytes, backup_count
    ):
        logger.addHandler(handler)
    return logger


def configure_logging(settings) -> logging.Logger:
    """Configure the engine and audit loggers from application settings."""
    setup_logger(
        AUDIT_LOGGER_NAME,
        log_dir=settings.log_dir,
        level="INFO",
        log_format=AUDIT_FORMAT,
        file_logging=settings.log_to_file,
        # Audit lines still reach the console through the parent logger
        console_logging=False,
    )
    return setup_logger(
        ROOT_LOGGER_NAME,
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.log_to_file,
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger under the ``subsidy`` hierarchy."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)
