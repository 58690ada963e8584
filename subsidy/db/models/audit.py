"""Audit event model.

This table is IMMUTABLE - database triggers prevent UPDATE and DELETE operations.
Replaying a process's events ordered by id reconstructs its full history.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
import uuid

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from subsidy.db.base import Base, utcnow


class AuditEventKind(str, Enum):
    """Kinds of audit events emitted by the engine."""
    CREATION = "creation"
    EDIT = "edit"
    SUBMISSION = "submission"
    STATE_CHANGE = "state_change"
    VALIDATION = "validation"
    APPROVAL = "approval"
    REJECTION = "rejection"
    CORRECTION_REQUESTED = "correction_requested"
    SIGNATURE = "signature"
    CLOSURE = "closure"


class AuditEvent(Base):
    """
    Immutable audit event tied to a process.

    Records every state-changing operation for compliance and reporting.
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    process_id = Column(Uuid, ForeignKey("processes.id"), nullable=False, index=True)

    # What happened
    kind = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    # Actor information
    actor_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    actor_role = Column(String(50), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships (read-only for querying)
    process = relationship("Process", back_populates="audit_events")
    actor = relationship("User")

    def __repr__(self) -> str:
        return f"<AuditEvent {self.kind} on {self.process_id}>"

    @classmethod
    def create_entry(
        cls,
        process_id: uuid.UUID,
        kind: AuditEventKind,
        description: str,
        *,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "AuditEvent":
        """
        Factory method to create a new audit event.

        Args:
            process_id: Process the event belongs to
            kind: Event kind
            description: Human-readable summary
            actor_id: ID of the acting user (None for system actions)
            actor_role: Role the actor acted in
            details: Structured context
            ip_address: Client IP address
            user_agent: Client user agent string
            created_at: Event time (defaults to now)
        """
        return cls(
            process_id=process_id,
            kind=kind.value if isinstance(kind, AuditEventKind) else kind,
            description=description,
            actor_id=actor_id,
            actor_role=actor_role.value if isinstance(actor_role, Enum) else actor_role,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=created_at or utcnow(),
        )
