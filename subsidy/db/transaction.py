"""Transaction boundary shared by every state-changing operation."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from subsidy.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any failure.

    A lost optimistic-version race or a unique-index violation caused by a
    concurrent writer surfaces as ``ConflictError``.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.info("Concurrent modification detected: %s", e)
        raise ConflictError("The process was modified concurrently; reload and retry") from e
    except IntegrityError as e:
        db.rollback()
        logger.info("Integrity conflict: %s", e.orig)
        raise ConflictError("The change conflicts with a concurrent update") from e
    except Exception:
        db.rollback()
        raise
