"""Audit ledger: append-only event writer and its read projections.

Writers are called by the process service and the document gate inside
their transaction; nothing here commits. The read side feeds timelines,
the polling feed for notification/reporting consumers and dashboard
statistics.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import Select, func
from sqlalchemy.orm import Session

from subsidy.core.collaborators import Provenance, UserInfo
from subsidy.db.base import utcnow
from subsidy.db.models import AuditEvent, AuditEventKind, Process


class AuditLedger:
    """Append-only log of events tied to a process."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def record(
        self,
        process_id: UUID,
        kind: AuditEventKind,
        description: str,
        *,
        actor: Optional[UserInfo] = None,
        details: Optional[Dict[str, Any]] = None,
        provenance: Optional[Provenance] = None,
    ) -> AuditEvent:
        """Append one event. The caller owns the transaction."""
        provenance = provenance or Provenance()
        event = AuditEvent.create_entry(
            process_id=process_id,
            kind=kind,
            description=description,
            actor_id=actor.id if actor else None,
            actor_role=actor.role.value if actor else None,
            details=details,
            ip_address=provenance.ip_address,
            user_agent=provenance.user_agent,
            created_at=self.clock(),
        )
        self.db.add(event)
        return event

    # Read side

    def events_for(self, process_id: UUID) -> List[AuditEvent]:
        """All events of a process in creation order."""
        return (
            self.db.query(AuditEvent)
            .filter(AuditEvent.process_id == process_id)
            .order_by(AuditEvent.created_at, AuditEvent.id)
            .all()
        )

    def events_since(
        self,
        after_id: int = 0,
        *,
        process_id: Optional[UUID] = None,
        kinds: Optional[Iterable[AuditEventKind]] = None,
        limit: int = 100,
        within: Optional[Select] = None,
    ) -> List[AuditEvent]:
        """Polling feed: events with an id greater than ``after_id``.

        Subscribers keep the last id they processed and call again with it.
        ``within`` is a select of process ids the feed is restricted to.
        """
        query = self.db.query(AuditEvent).filter(AuditEvent.id > after_id)
        if process_id is not None:
            query = query.filter(AuditEvent.process_id == process_id)
        if within is not None:
            query = query.filter(AuditEvent.process_id.in_(within))
        if kinds:
            query = query.filter(AuditEvent.kind.in_([AuditEventKind(k).value for k in kinds]))
        return query.order_by(AuditEvent.id).limit(limit).all()

    def statistics(self, days: int = 30) -> Dict[str, Any]:
        """Aggregate counts for dashboards."""
        total = self.db.query(func.count(Process.id)).scalar() or 0

        by_state = dict(
            self.db.query(Process.state, func.count(Process.id))
            .group_by(Process.state)
            .all()
        )
        by_kind = dict(
            self.db.query(AuditEvent.kind, func.count(AuditEvent.id))
            .group_by(AuditEvent.kind)
            .all()
        )

        since = self.clock() - timedelta(days=days)
        recent = (
            self.db.query(func.count(AuditEvent.id))
            .filter(AuditEvent.created_at >= since)
            .scalar()
        ) or 0

        return {
            "total_processes": total,
            "processes_by_state": by_state,
            "events_by_kind": by_kind,
            "recent_activity": {"days": days, "events": recent},
        }
