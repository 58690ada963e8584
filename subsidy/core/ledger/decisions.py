"""Decision recorder: immutable approve/reject/correction records."""

from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from subsidy.core.collaborators import Provenance, UserInfo
from subsidy.core.process.states import ProcessState
from subsidy.db.base import utcnow
from subsidy.db.models import Decision


class DecisionRecorder:

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def record(
        self,
        process_id: UUID,
        from_state: ProcessState,
        to_state: ProcessState,
        approved: bool,
        actor: UserInfo,
        *,
        rationale: Optional[str] = None,
        provenance: Optional[Provenance] = None,
    ) -> Decision:
        """Insert a decision row. The rationale is stored verbatim."""
        provenance = provenance or Provenance()
        decision = Decision(
            process_id=process_id,
            from_state=from_state.value,
            to_state=to_state.value,
            approved=approved,
            rationale=rationale,
            actor_id=actor.id,
            actor_role=actor.role.value,
            ip_address=provenance.ip_address,
            user_agent=provenance.user_agent,
            created_at=self.clock(),
        )
        self.db.add(decision)
        return decision

    def decisions_for(self, process_id: UUID) -> List[Decision]:
        """All decisions of a process in creation order."""
        return (
            self.db.query(Decision)
            .filter(Decision.process_id == process_id)
            .order_by(Decision.created_at, Decision.id)
            .all()
        )
