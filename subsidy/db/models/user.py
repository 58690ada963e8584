import uuid
from sqlalchemy import Column, String, DateTime, Boolean, Uuid
from sqlalchemy.orm import relationship

from subsidy.db.base import Base, utcnow


class User(Base):
    """Local mirror of the identity store: role and active flag per user."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    national_id = Column(String(20), nullable=True, unique=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    beneficiary_processes = relationship(
        "Process", back_populates="beneficiary", foreign_keys="Process.beneficiary_id"
    )
    landlord_processes = relationship(
        "Process", back_populates="landlord", foreign_keys="Process.landlord_id"
    )

    def __repr__(self) -> str:
        return f"<User {self.email} [{self.role}]>"
