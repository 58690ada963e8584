"""Decision records.

This table is IMMUTABLE. Rows are inserted by the process service only;
PostgreSQL triggers from the initial migration reject UPDATE and DELETE.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from subsidy.db.base import Base, utcnow


class Decision(Base):
    """An approve, reject or correction action on a process."""
    __tablename__ = "decisions"

    # Integer key keeps insertion order stable for replay
    id = Column(Integer, primary_key=True, autoincrement=True)
    process_id = Column(Uuid, ForeignKey("processes.id"), nullable=False, index=True)

    # Transition details
    from_state = Column(String(50), nullable=False)
    to_state = Column(String(50), nullable=False)
    approved = Column(Boolean, nullable=False)
    rationale = Column(Text, nullable=True)

    # Actor
    actor_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    actor_role = Column(String(50), nullable=False)

    # Provenance
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships (read-only for querying)
    process = relationship("Process", back_populates="decisions")
    actor = relationship("User")

    def __repr__(self) -> str:
        verdict = "approved" if self.approved else "rejected"
        return f"<Decision {self.from_state} -> {self.to_state} ({verdict})>"
