"""Common utilities for the subsidy engine."""

from .logger import configure_logging, get_audit_logger, get_logger, setup_logger
from .config import CatalogEntry, load_catalog, load_config

__all__ = [
    "CatalogEntry",
    "configure_logging",
    "get_audit_logger",
    "get_logger",
    "load_catalog",
    "load_config",
    "setup_logger",
]
