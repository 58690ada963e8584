"""Database models for the subsidy engine."""

from subsidy.db.models.user import User
from subsidy.db.models.process import Process, PdfHistory, ProcessCodeCounter
from subsidy.db.models.document import Document, DownloadRecord, ValidationStatus
from subsidy.db.models.decision import Decision
from subsidy.db.models.audit import AuditEvent, AuditEventKind

__all__ = [
    "User",
    "Process",
    "PdfHistory",
    "ProcessCodeCounter",
    "Document",
    "DownloadRecord",
    "ValidationStatus",
    "Decision",
    "AuditEvent",
    "AuditEventKind",
]
