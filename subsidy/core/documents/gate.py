"""Document gate.

Tracks per-type document versions and their review status for a process,
and answers whether all mandatory types are present (for submission) or
approved (for the validator's approval decision).
"""

import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from subsidy.common.config import MIME_EXTENSIONS, CatalogEntry
from subsidy.common.logger import get_audit_logger
from subsidy.core.access import ensure_can_view, is_owner, resolve_actor
from subsidy.core.collaborators import (
    DocumentCatalog,
    DocumentStorage,
    IdentityProvider,
    Provenance,
    UploadedFile,
    UserInfo,
)
from subsidy.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from subsidy.core.ledger import AuditLedger
from subsidy.core.process.states import EDITABLE_STATES, ProcessState
from subsidy.core.roles import DocumentAction, Role, can_document
from subsidy.db.base import utcnow
from subsidy.db.models import AuditEventKind, Document, DownloadRecord, Process, ValidationStatus
from subsidy.db.transaction import atomic

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


def check_file(file: UploadedFile, entry: CatalogEntry) -> None:
    """Validate declared format, size and extension against a catalog entry.

    Raises:
        ValidationError: With every problem found under the ``file`` key
    """
    problems = []
    if file.content_type not in entry.allowed_formats:
        problems.append(
            f"File type {file.content_type} not allowed. Allowed: {', '.join(entry.allowed_formats)}"
        )
    if file.size == 0:
        problems.append("File is empty")
    elif file.size > entry.max_size_bytes:
        problems.append(f"File exceeds the maximum size of {entry.max_size_mb:g}MB")

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in MIME_EXTENSIONS.get(file.content_type, []):
        problems.append("File extension does not match its type")

    if problems:
        raise ValidationError({"file": problems})


class DocumentGate:
    """
    Document operations for a process.

    Handles:
    - Versioned uploads with a single active document per type
    - Document validation during the review stage
    - Deletion while the process is still a draft
    - Completeness checks against the catalog
    """

    def __init__(
        self,
        db: Session,
        identity: IdentityProvider,
        storage: DocumentStorage,
        catalog: DocumentCatalog,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.identity = identity
        self.storage = storage
        self.catalog = catalog
        self.clock = clock
        self.ledger = AuditLedger(db, clock)

    # Commands

    def upload(
        self,
        process_id: UUID,
        catalog_type: str,
        file: UploadedFile,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Document:
        """
        Store a new version of a document type.

        Stored bytes are removed again if anything after the store fails.

        Raises:
            AuthorizationError: Actor is neither the owner nor a validator
            NotFoundError: Unknown process or inactive catalog type
            ConflictError: Process not in DRAFT or NEEDS_CORRECTION
            ValidationError: Disallowed format, size or extension
            DependencyError: Storage failure
        """
        stored = None
        try:
            with atomic(self.db):
                actor = resolve_actor(self.identity, actor_id)
                if not can_document(actor.role, DocumentAction.UPLOAD):
                    raise AuthorizationError("Not allowed to upload documents")

                process = self._get_process(process_id, lock=True)
                if actor.role == Role.BENEFICIARY and not is_owner(actor, process):
                    raise AuthorizationError("Only the owning beneficiary may upload documents")
                if ProcessState(process.state) not in EDITABLE_STATES:
                    raise ConflictError(
                        "Documents cannot be uploaded in the current state",
                        details={"state": process.state},
                    )

                entry = self.catalog.get_entry(catalog_type)
                if entry is None or not entry.active:
                    raise NotFoundError("Document type", catalog_type)

                check_file(file, entry)

                try:
                    stored = self.storage.store(file.data, file.filename)
                except Exception as e:
                    raise DependencyError("storage", str(e)) from e

                document = self._add_version(process, entry, file, stored, actor)
                self.ledger.record(
                    process.id,
                    AuditEventKind.EDIT,
                    f"Document uploaded: {entry.name}",
                    actor=actor,
                    details={
                        "document_id": str(document.id),
                        "catalog_type": entry.type,
                        "original_filename": file.filename,
                        "version": document.version,
                    },
                    provenance=provenance,
                )
        except Exception:
            if stored is not None:
                self._discard_stored(stored.ref)
            raise

        audit_logger.info(
            "Document uploaded: process=%s type=%s version=%s by=%s",
            process.code, entry.type, document.version, actor.id,
        )
        return document

    def validate(
        self,
        document_id: UUID,
        approved: bool,
        reason: Optional[str],
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Document:
        """
        Record the validator's verdict on one document.

        Raises:
            AuthorizationError: Actor is not a validator
            NotFoundError: Unknown document
            ConflictError: Process not in DOCS_IN_VALIDATION, or document superseded
            ValidationError: Rejection without a reason
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            if not can_document(actor.role, DocumentAction.VALIDATE):
                raise AuthorizationError("Only validators may validate documents")

            document = self._get_document(document_id)
            process = self._get_process(document.process_id, lock=True)
            if ProcessState(process.state) != ProcessState.DOCS_IN_VALIDATION:
                raise ConflictError(
                    "Process is not in document validation",
                    details={"state": process.state},
                )
            if not document.active:
                raise ConflictError("Document has been superseded by a newer version")
            if not approved and not (reason and reason.strip()):
                raise ValidationError({"reason": ["A rejection reason is required"]})

            entry = self.catalog.get_entry(document.catalog_type)
            type_name = entry.name if entry else document.catalog_type

            document.validation_status = (
                ValidationStatus.APPROVED.value if approved else ValidationStatus.REJECTED.value
            )
            document.rejection_reason = None if approved else reason
            document.validated_by_id = actor.id
            document.validated_at = self.clock()
            self.ledger.record(
                process.id,
                AuditEventKind.VALIDATION,
                f"Document {'approved' if approved else 'rejected'}: {type_name}",
                actor=actor,
                details={
                    "document_id": str(document.id),
                    "approved": approved,
                    "reason": reason,
                },
                provenance=provenance,
            )

        audit_logger.info(
            "Document validated: process=%s document=%s approved=%s by=%s",
            process.code, document.id, approved, actor.id,
        )
        return document

    def delete(
        self,
        document_id: UUID,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> None:
        """
        Remove a document and its stored content while the process is a draft.

        Raises:
            AuthorizationError: Actor is not the owning beneficiary
            NotFoundError: Unknown document
            ConflictError: Process is no longer a draft
            DependencyError: Storage failure
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            document = self._get_document(document_id)
            process = self._get_process(document.process_id, lock=True)

            if not can_document(actor.role, DocumentAction.DELETE) or not is_owner(actor, process):
                raise AuthorizationError("Only the owning beneficiary may delete documents")
            if ProcessState(process.state) != ProcessState.DRAFT:
                raise ConflictError("Documents cannot be deleted after submission")

            entry = self.catalog.get_entry(document.catalog_type)
            type_name = entry.name if entry else document.catalog_type
            stored_ref = document.stored_ref
            details = {
                "document_id": str(document.id),
                "catalog_type": document.catalog_type,
                "version": document.version,
            }

            self.db.delete(document)
            self.ledger.record(
                process.id,
                AuditEventKind.EDIT,
                f"Document deleted: {type_name}",
                actor=actor,
                details=details,
                provenance=provenance,
            )
            self.db.flush()
            try:
                self.storage.delete(stored_ref)
            except Exception as e:
                raise DependencyError("storage", str(e)) from e

        audit_logger.info(
            "Document deleted: process=%s document=%s by=%s",
            process.code, details["document_id"], actor.id,
        )

    def download(
        self,
        document_id: UUID,
        viewer_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Dict[str, Any]:
        """
        Record a download and return what the caller needs to stream the file.

        Raises:
            AuthorizationError: Viewer may not see this document
            NotFoundError: Unknown document, or stored content is gone
        """
        provenance = provenance or Provenance()
        with atomic(self.db):
            viewer = resolve_actor(self.identity, viewer_id)
            document = self._get_document(document_id)
            self._ensure_can_view_documents(viewer, document.process)

            if not self.storage.exists(document.stored_ref):
                raise NotFoundError("Stored file", document.id)

            self.db.add(DownloadRecord(
                document_id=document.id,
                user_id=viewer.id,
                ip_address=provenance.ip_address,
                user_agent=provenance.user_agent,
                created_at=self.clock(),
            ))

        return {
            "ref": document.stored_ref,
            "filename": document.original_filename,
            "mime_type": document.mime_type,
        }

    # Queries

    def list_active(self, process_id: UUID) -> List[Document]:
        """Current documents of a process, one per catalog type at most."""
        return (
            self.db.query(Document)
            .filter(and_(Document.process_id == process_id, Document.active.is_(True)))
            .order_by(Document.catalog_type)
            .all()
        )

    def list_all(self, process_id: UUID) -> List[Document]:
        """Every version of every document, superseded ones included."""
        return (
            self.db.query(Document)
            .filter(Document.process_id == process_id)
            .order_by(Document.catalog_type, Document.version.desc())
            .all()
        )

    def list_for_viewer(self, process_id: UUID, viewer_id: UUID, include_history: bool = False) -> List[Document]:
        """Viewer-checked listing."""
        viewer = resolve_actor(self.identity, viewer_id)
        process = self._get_process(process_id)
        self._ensure_can_view_documents(viewer, process)
        return self.list_all(process_id) if include_history else self.list_active(process_id)

    def get_for_viewer(self, document_id: UUID, viewer_id: UUID) -> Document:
        viewer = resolve_actor(self.identity, viewer_id)
        document = self._get_document(document_id)
        self._ensure_can_view_documents(viewer, document.process)
        return document

    def missing_mandatory(self, process_id: UUID) -> List[str]:
        """Names of mandatory types without an active document."""
        present = {doc.catalog_type for doc in self.list_active(process_id)}
        return [entry.name for entry in self._mandatory_entries() if entry.type not in present]

    def pending_mandatory(self, process_id: UUID) -> List[str]:
        """Names of mandatory types without an approved active document."""
        approved = {
            doc.catalog_type
            for doc in self.list_active(process_id)
            if doc.validation_status == ValidationStatus.APPROVED.value
        }
        return [entry.name for entry in self._mandatory_entries() if entry.type not in approved]

    # Internals

    def _mandatory_entries(self) -> List[CatalogEntry]:
        entries = []
        for doc_type in self.catalog.list_mandatory():
            entry = self.catalog.get_entry(doc_type)
            if entry is not None and entry.active:
                entries.append(entry)
        return entries

    def _add_version(self, process: Process, entry: CatalogEntry, file: UploadedFile, stored, actor: UserInfo) -> Document:
        # Deactivate first so the partial unique index never sees two active rows
        self.db.query(Document).filter(
            and_(
                Document.process_id == process.id,
                Document.catalog_type == entry.type,
                Document.active.is_(True),
            )
        ).update({Document.active: False}, synchronize_session="fetch")
        self.db.flush()

        last_version = self.db.query(func.max(Document.version)).filter(
            and_(Document.process_id == process.id, Document.catalog_type == entry.type)
        ).scalar()

        document = Document(
            process_id=process.id,
            catalog_type=entry.type,
            original_filename=file.filename,
            stored_ref=stored.ref,
            content_hash=stored.content_hash,
            size_bytes=stored.size_bytes,
            mime_type=file.content_type,
            version=(last_version or 0) + 1,
            active=True,
            validation_status=ValidationStatus.PENDING.value,
            uploaded_by_id=actor.id,
            created_at=self.clock(),
        )
        self.db.add(document)
        self.db.flush()
        return document

    def _discard_stored(self, ref: str) -> None:
        try:
            self.storage.delete(ref)
        except Exception:
            logger.exception("Failed to remove stored object %s after a failed upload", ref)

    def _ensure_can_view_documents(self, viewer: UserInfo, process: Process) -> None:
        if viewer.role == Role.LANDLORD or not can_document(viewer.role, DocumentAction.VIEW):
            raise AuthorizationError("Not allowed to view documents")
        ensure_can_view(viewer, process)

    def _get_process(self, process_id: UUID, lock: bool = False) -> Process:
        query = self.db.query(Process).filter(Process.id == process_id)
        if lock:
            query = query.with_for_update().populate_existing()
        process = query.first()
        if process is None:
            raise NotFoundError("Process", process_id)
        return process

    def _get_document(self, document_id: UUID) -> Document:
        document = self.db.query(Document).filter(Document.id == document_id).first()
        if document is None:
            raise NotFoundError("Document", document_id)
        return document
