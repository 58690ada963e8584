"""Audit ledger query API endpoints."""

from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from subsidy.api.deps import get_ledger, get_query_service, require_roles
from subsidy.api.schemas.common import error_responses
from subsidy.core.collaborators import UserInfo
from subsidy.core.config import get_settings
from subsidy.core.exceptions import ValidationError
from subsidy.core.ledger import AuditLedger
from subsidy.core.queries import ProcessQueryService
from subsidy.core.roles import STAFF_ROLES, Role
from subsidy.db.models import AuditEventKind

router = APIRouter(prefix="/audit", tags=["audit"], responses=error_responses(403, 404, 422))
settings = get_settings()


# Schemas
class AuditEventResponse(BaseModel):
    id: int
    process_id: UUID
    kind: str
    description: str
    details: Optional[Dict[str, Any]]
    actor_id: Optional[UUID]
    actor_role: Optional[str]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class FeedResponse(BaseModel):
    items: List[AuditEventResponse]
    last_id: int


class StatisticsResponse(BaseModel):
    total_processes: int
    processes_by_state: Dict[str, int]
    events_by_kind: Dict[str, int]
    recent_activity: Dict[str, int]


# Endpoints
@router.get("/feed", response_model=FeedResponse)
def event_feed(
    after_id: int = Query(0, ge=0, description="Last event id already processed"),
    process_id: Optional[UUID] = None,
    kind: Optional[List[str]] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserInfo = Depends(require_roles(*sorted(STAFF_ROLES))),
    queries: ProcessQueryService = Depends(get_query_service),
):
    """
    Polling feed of audit events for notification and reporting consumers.

    Only events of processes the caller may currently see are returned.
    Call again with the returned ``last_id`` to receive newer events.
    """
    kinds = None
    if kind:
        try:
            kinds = [AuditEventKind(k) for k in kind]
        except ValueError as e:
            raise ValidationError({"kind": [str(e)]})

    events = queries.event_feed(
        current_user.id, after_id, process_id=process_id, kinds=kinds, limit=limit
    )
    return FeedResponse(
        items=[AuditEventResponse.model_validate(e) for e in events],
        last_id=events[-1].id if events else after_id,
    )


@router.get("/processes/{process_id}", response_model=List[AuditEventResponse])
def process_events(
    process_id: UUID,
    current_user: UserInfo = Depends(require_roles(*sorted(STAFF_ROLES))),
    queries: ProcessQueryService = Depends(get_query_service),
):
    """Raw audit events of one process, oldest first."""
    return queries.process_events(process_id, current_user.id)


@router.get("/statistics", response_model=StatisticsResponse)
def statistics(
    days: int = Query(settings.recent_activity_days, ge=1, le=365),
    current_user: UserInfo = Depends(require_roles(Role.VALIDATOR, Role.DIRECTOR)),
    ledger: AuditLedger = Depends(get_ledger),
):
    """Dashboard counts: processes by state, events by kind, recent activity."""
    return ledger.statistics(days)
