"""Process aggregate models.

A process row is never deleted. Concurrent writers are detected through
``row_version``: SQLAlchemy adds ``WHERE row_version = :old`` to every UPDATE
and raises ``StaleDataError`` when another transaction got there first.
"""

import uuid
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from subsidy.db.base import Base, utcnow


class Process(Base):
    """One subsidy application and its lifecycle record."""
    __tablename__ = "processes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(32), unique=True, nullable=False, index=True)

    # Workflow state
    state = Column(String(50), nullable=False, default="draft", index=True)

    # Parties
    beneficiary_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    landlord_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    # Opaque form payload
    form = Column(JSON, nullable=True)

    # Signed artifact
    pdf_ref = Column(String(500), nullable=True)
    pdf_hash = Column(String(64), nullable=True)
    pdf_version = Column(Integer, nullable=False, default=0)
    signed = Column(Boolean, nullable=False, default=False)

    # Signature provenance
    signed_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    signature_hash = Column(String(64), nullable=True)
    signature_ip = Column(String(45), nullable=True)
    signature_user_agent = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    submitted_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    # Optimistic concurrency counter
    row_version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    # Relationships
    beneficiary = relationship("User", foreign_keys=[beneficiary_id], back_populates="beneficiary_processes")
    landlord = relationship("User", foreign_keys=[landlord_id], back_populates="landlord_processes")
    signer = relationship("User", foreign_keys=[signed_by_id])
    closer = relationship("User", foreign_keys=[closed_by_id])
    documents = relationship("Document", back_populates="process", order_by="Document.created_at")
    decisions = relationship("Decision", back_populates="process", order_by="Decision.id")
    audit_events = relationship("AuditEvent", back_populates="process", order_by="AuditEvent.id")
    pdf_history = relationship("PdfHistory", back_populates="process", order_by="PdfHistory.version")

    def __repr__(self) -> str:
        return f"<Process {self.code} [{self.state}]>"


class PdfHistory(Base):
    """One immutable row per signed PDF version."""
    __tablename__ = "pdf_history"
    __table_args__ = (
        UniqueConstraint("process_id", "version", name="uq_pdf_history_process_version"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    process_id = Column(Uuid, ForeignKey("processes.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    artifact_ref = Column(String(500), nullable=False)
    content_hash = Column(String(64), nullable=False)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    process = relationship("Process", back_populates="pdf_history")

    def __repr__(self) -> str:
        return f"<PdfHistory {self.process_id} v{self.version}>"


class ProcessCodeCounter(Base):
    """Last sequence number issued per calendar year."""
    __tablename__ = "process_code_counters"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ProcessCodeCounter {self.year}={self.last_value}>"
