"""Declarative base and shared column helpers."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, stored the same way on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
