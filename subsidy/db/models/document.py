"""Document models.

At most one document per (process, catalog type) is active. The partial
unique index enforces it at the database level on SQLite and PostgreSQL.
"""

import uuid
from enum import Enum
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from subsidy.db.base import Base, utcnow


class ValidationStatus(str, Enum):
    """Review outcome of a single document."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("process_id", "catalog_type", "version", name="uq_documents_type_version"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    process_id = Column(Uuid, ForeignKey("processes.id"), nullable=False, index=True)
    catalog_type = Column(String(100), nullable=False)

    # Stored content
    original_filename = Column(String(255), nullable=False)
    stored_ref = Column(String(500), nullable=False)
    content_hash = Column(String(64), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)

    # Versioning
    version = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)

    # Review
    validation_status = Column(String(20), nullable=False, default=ValidationStatus.PENDING.value)
    rejection_reason = Column(Text, nullable=True)
    validated_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    validated_at = Column(DateTime, nullable=True)

    uploaded_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    process = relationship("Process", back_populates="documents")
    uploader = relationship("User", foreign_keys=[uploaded_by_id])
    validator = relationship("User", foreign_keys=[validated_by_id])
    downloads = relationship("DownloadRecord", back_populates="document", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Document {self.catalog_type} v{self.version} [{self.validation_status}]>"


Index(
    "uq_documents_one_active_per_type",
    Document.process_id,
    Document.catalog_type,
    unique=True,
    sqlite_where=Document.active.is_(True),
    postgresql_where=Document.active.is_(True),
)


class DownloadRecord(Base):
    """One row per document download."""
    __tablename__ = "document_downloads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    document_id = Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    document = relationship("Document", back_populates="downloads")

    def __repr__(self) -> str:
        return f"<DownloadRecord {self.document_id} by {self.user_id}>"
