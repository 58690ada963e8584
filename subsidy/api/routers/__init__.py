"""API routers for the subsidy engine."""

from . import audit
from . import catalog
from . import documents
from . import health
from . import processes

__all__ = ["audit", "catalog", "documents", "health", "processes"]
