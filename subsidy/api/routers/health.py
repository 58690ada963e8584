"""Health check endpoints.

- /health: Basic health check
- /health/live: Liveness probe (is the app running?)
- /health/ready: Readiness probe (database reachable, document catalog loaded)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subsidy import __version__
from subsidy.api.deps import get_catalog, get_db
from subsidy.core.collaborators import DocumentCatalog

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database(db: Session) -> Dict[str, Any]:
    """Check database connectivity."""
    try:
        db.execute(text("SELECT 1")).fetchone()
        return {"status": "healthy", "dialect": db.get_bind().dialect.name}
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return {"status": "unhealthy", "error": str(e)}


def check_catalog(catalog: DocumentCatalog) -> Dict[str, Any]:
    entries = catalog.list_entries()
    if not entries:
        return {"status": "unhealthy", "error": "no document types configured"}
    return {
        "status": "healthy",
        "document_types": len(entries),
        "mandatory": len(catalog.list_mandatory()),
    }


@router.get("/health")
async def health_check():
    """Returns 200 if the application is running."""
    return {"status": "healthy", "version": __version__, "timestamp": _now()}


@router.get("/health/live")
async def liveness_probe():
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "alive", "timestamp": _now()},
    )


@router.get("/health/ready")
def readiness_probe(
    db: Session = Depends(get_db),
    catalog: DocumentCatalog = Depends(get_catalog),
):
    """
    Readiness probe.

    Failure means traffic should not be routed to this instance.
    """
    checks = {"database": check_database(db), "catalog": check_catalog(catalog)}
    unhealthy = [name for name, check in checks.items() if check["status"] == "unhealthy"]

    if unhealthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "checks": checks, "failed": unhealthy, "timestamp": _now()},
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "ready", "checks": checks, "timestamp": _now()},
    )
