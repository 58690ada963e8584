"""Role-scoped process listing and audit reads.

The same visibility rule as ``subsidy.core.access.can_view`` expressed as a
query filter, so pagination counts and the event feed only cover what the
viewer may see.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import false, or_
from sqlalchemy.orm import Query, Session

from subsidy.core.access import ensure_can_view, resolve_actor
from subsidy.core.collaborators import IdentityProvider, UserInfo
from subsidy.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from subsidy.core.ledger import AuditLedger
from subsidy.core.process.states import ROLE_VISIBLE_STATES, ProcessState
from subsidy.core.roles import EXTERNAL_ROLES, Role
from subsidy.db.models import AuditEvent, AuditEventKind, Process, User

MAX_PER_PAGE = 100


@dataclass
class ProcessPage:
    items: List[Process]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return (self.total + self.per_page - 1) // self.per_page if self.per_page > 0 else 0


def visible_processes(db: Session, viewer: UserInfo) -> Query:
    """Base query restricted to what the viewer may read."""
    query = db.query(Process)

    if viewer.role == Role.BENEFICIARY:
        return query.filter(Process.beneficiary_id == viewer.id)
    if viewer.role == Role.LANDLORD:
        return query.filter(Process.landlord_id == viewer.id)
    if viewer.role == Role.VALIDATOR:
        return query

    states = ROLE_VISIBLE_STATES.get(viewer.role)
    if not states:
        return query.filter(false())
    return query.filter(Process.state.in_(sorted(s.value for s in states)))


class ProcessQueryService:

    def __init__(self, db: Session, identity: IdentityProvider):
        self.db = db
        self.identity = identity
        self.ledger = AuditLedger(db)

    def list_processes(
        self,
        viewer_id: UUID,
        *,
        state: Union[ProcessState, str, None] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> ProcessPage:
        """
        List processes visible to the viewer, most recently updated first.

        Args:
            viewer_id: Acting user
            state: Optional state filter, applied on top of the role scope
            search: Case-insensitive match on code, beneficiary name or national id
            page: 1-based page number
            per_page: Page size (max 100)

        Raises:
            ValidationError: Bad paging or unknown state
        """
        viewer = resolve_actor(self.identity, viewer_id)

        errors = {}
        if page < 1:
            errors["page"] = ["Page must be at least 1"]
        if per_page < 1 or per_page > MAX_PER_PAGE:
            errors["per_page"] = [f"Page size must be between 1 and {MAX_PER_PAGE}"]
        if state is not None:
            try:
                state = ProcessState(state)
            except ValueError:
                errors["state"] = [f"Unknown state: {state}"]
        if errors:
            raise ValidationError(errors)

        query = visible_processes(self.db, viewer)

        if state is not None:
            query = query.filter(Process.state == state.value)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.join(User, Process.beneficiary_id == User.id).filter(
                or_(
                    Process.code.ilike(pattern),
                    User.name.ilike(pattern),
                    User.national_id.ilike(pattern),
                )
            )

        total = query.count()
        items = (
            query.order_by(Process.updated_at.desc(), Process.code.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return ProcessPage(items=items, total=total, page=page, per_page=per_page)

    def process_events(self, process_id: UUID, viewer_id: UUID) -> List[AuditEvent]:
        """Raw audit events of one process for a staff viewer who may see it.

        Raises:
            AuthorizationError: External viewer, or the process is outside
                the viewer's visibility
            NotFoundError: Unknown process
        """
        viewer = self._staff_viewer(viewer_id)
        process = self.db.query(Process).filter(Process.id == process_id).first()
        if process is None:
            raise NotFoundError("Process", process_id)
        ensure_can_view(viewer, process)
        return self.ledger.events_for(process.id)

    def event_feed(
        self,
        viewer_id: UUID,
        after_id: int = 0,
        *,
        process_id: Optional[UUID] = None,
        kinds: Optional[Iterable[AuditEventKind]] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Polling feed restricted to processes the viewer may currently see."""
        viewer = self._staff_viewer(viewer_id)
        visible_ids = visible_processes(self.db, viewer).with_entities(Process.id).statement
        return self.ledger.events_since(
            after_id, process_id=process_id, kinds=kinds, limit=limit, within=visible_ids
        )

    def _staff_viewer(self, viewer_id: UUID) -> UserInfo:
        viewer = resolve_actor(self.identity, viewer_id)
        if viewer.role in EXTERNAL_ROLES:
            raise AuthorizationError("Audit events are only available to staff")
        return viewer
