"""Process service for managing subsidy process workflows.

Provides the high-level API on top of the process state machine: loads and
persists processes, enforces ownership and document preconditions, and
writes decisions and audit events in the same transaction as the state
change.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from subsidy.common.logger import get_audit_logger
from subsidy.core.access import ensure_can_view, is_owner, resolve_actor
from subsidy.core.collaborators import (
    DocumentCatalog,
    DocumentStorage,
    IdentityProvider,
    PdfRenderer,
    ProcessSnapshot,
    Provenance,
    UserInfo,
)
from subsidy.core.documents import DocumentGate
from subsidy.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from subsidy.core.ledger import AuditLedger, DecisionRecorder
from subsidy.core.roles import CREATOR_ROLES, EXTERNAL_ROLES, Role, role_in
from subsidy.db.base import utcnow
from subsidy.db.models import (
    AuditEventKind,
    PdfHistory,
    Process,
    ProcessCodeCounter,
    User,
)
from subsidy.db.transaction import atomic

from .machine import ProcessStateMachine
from .states import ProcessAction, ProcessState

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class ProcessService:
    """
    High-level service for the subsidy process lifecycle.

    Handles:
    - Creating processes and issuing their codes
    - Form edits and submission by the beneficiary
    - Validation, decisions and correction requests by staff
    - Signing through the PDF renderer and close-out
    - Visibility-checked timeline and decision history
    """

    def __init__(
        self,
        db: Session,
        identity: IdentityProvider,
        storage: DocumentStorage,
        renderer: PdfRenderer,
        catalog: DocumentCatalog,
        *,
        clock: Callable[[], datetime] = utcnow,
        code_prefix: str = "SUB",
    ):
        """
        Initialize the process service.

        Args:
            db: Database session
            identity: Resolves user ids to role and active status
            storage: Stores document bytes
            renderer: Produces the signed PDF
            catalog: Document type catalog
            clock: Returns the current naive UTC time
            code_prefix: Prefix of generated process codes
        """
        self.db = db
        self.identity = identity
        self.renderer = renderer
        self.catalog = catalog
        self.clock = clock
        self.code_prefix = code_prefix
        self.documents = DocumentGate(db, identity, storage, catalog, clock=clock)
        self.ledger = AuditLedger(db, clock)
        self.decisions = DecisionRecorder(db, clock)

    # Commands
    #
    # Every command opens its transaction before resolving the actor, so a
    # failed precondition rolls back and releases the row lock.

    def create(
        self,
        beneficiary_id: UUID,
        actor_id: UUID,
        *,
        landlord_id: Optional[UUID] = None,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Open a new process in DRAFT for a beneficiary.

        Raises:
            AuthorizationError: Actor lacks the creator role
            NotFoundError: Beneficiary or landlord missing or with the wrong role
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            if not role_in(actor.role, CREATOR_ROLES):
                raise AuthorizationError("Not allowed to create processes")

            if not self.identity.exists_with_role(beneficiary_id, Role.BENEFICIARY):
                raise NotFoundError("Beneficiary", beneficiary_id)
            if landlord_id is not None and not self.identity.exists_with_role(landlord_id, Role.LANDLORD):
                raise NotFoundError("Landlord", landlord_id)

            now = self.clock()
            process = Process(
                code=self._next_code(now.year),
                state=ProcessState.DRAFT.value,
                beneficiary_id=beneficiary_id,
                landlord_id=landlord_id,
                created_by_id=actor.id,
                pdf_version=0,
                signed=False,
                created_at=now,
                updated_at=now,
            )
            self.db.add(process)
            self.db.flush()
            self.ledger.record(
                process.id,
                AuditEventKind.CREATION,
                "Subsidy process created",
                actor=actor,
                details={"code": process.code},
                provenance=provenance,
            )

        audit_logger.info(
            "Process created: id=%s code=%s beneficiary=%s by=%s",
            process.id, process.code, beneficiary_id, actor.id,
        )
        return process

    def update_form(
        self,
        process_id: UUID,
        payload: Dict[str, Any],
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Replace the form payload wholesale.

        Raises:
            AuthorizationError: Actor is not the owning beneficiary
            ConflictError: Process not in DRAFT or NEEDS_CORRECTION
            ValidationError: Payload is not a mapping
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            if not is_owner(actor, process):
                raise AuthorizationError("Only the beneficiary may edit the form")
            if ProcessState(process.state) not in (ProcessState.DRAFT, ProcessState.NEEDS_CORRECTION):
                raise ConflictError(
                    "The process cannot be edited in its current state",
                    details={"state": process.state},
                )
            if not isinstance(payload, dict):
                raise ValidationError({"form": ["Form payload must be a mapping"]})

            process.form = dict(payload)
            process.updated_at = self.clock()
            self.db.flush()
            self.ledger.record(
                process.id,
                AuditEventKind.EDIT,
                "Form updated",
                actor=actor,
                details={"fields": sorted(str(key) for key in payload)},
                provenance=provenance,
            )

        return process

    def submit(
        self,
        process_id: UUID,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Submit the process, or resubmit it after a correction request.

        DRAFT goes to SUBMITTED; NEEDS_CORRECTION goes straight back to
        DOCS_IN_VALIDATION.

        Raises:
            AuthorizationError: Actor is not the owning beneficiary
            ConflictError: Wrong state, missing mandatory documents or empty form
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            if not is_owner(actor, process):
                raise AuthorizationError("Only the beneficiary may submit the process")

            from_state = ProcessState(process.state)
            rule = self._machine(process, actor).transition(ProcessAction.SUBMIT)

            missing = self.documents.missing_mandatory(process.id)
            form_missing = process.form is None
            if missing or form_missing:
                problems = []
                if missing:
                    problems.append(f"Missing mandatory documents: {', '.join(missing)}")
                if form_missing:
                    problems.append("The form must be completed before submitting")
                raise ConflictError(
                    "; ".join(problems),
                    details={"missing_documents": missing, "form_missing": form_missing},
                )

            resubmission = from_state == ProcessState.NEEDS_CORRECTION
            if not resubmission:
                process.submitted_at = self.clock()
            self._apply(process, rule.to_state)
            self.ledger.record(
                process.id,
                AuditEventKind.SUBMISSION,
                "Corrections submitted" if resubmission else "Process submitted for review",
                actor=actor,
                details={"from_state": from_state.value, "to_state": rule.to_state.value},
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    def start_validation(
        self,
        process_id: UUID,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """Move a submitted process into document validation (validator only)."""
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            from_state = ProcessState(process.state)
            rule = self._machine(process, actor).transition(ProcessAction.START_VALIDATION)

            self._apply(process, rule.to_state)
            self.ledger.record(
                process.id,
                AuditEventKind.STATE_CHANGE,
                "Document validation started",
                actor=actor,
                details={"from_state": from_state.value, "to_state": rule.to_state.value},
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    def make_decision(
        self,
        process_id: UUID,
        approved: bool,
        rationale: Optional[str],
        actor_id: UUID,
        actor_role: Union[Role, str, None] = None,
        *,
        expected_version: Optional[int] = None,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Approve or reject the process in its current review state.

        Args:
            process_id: Process to decide on
            approved: Approve (forward edge) or reject (terminal)
            rationale: Required when rejecting, stored verbatim
            actor_id: Acting user
            actor_role: Role the caller claims; must match the identity
            expected_version: ``row_version`` the caller based the decision on
            provenance: Request origin

        Raises:
            AuthorizationError: State takes no decisions, role not accepted,
                or claimed role mismatch
            ConflictError: No approve edge, pending mandatory documents,
                stale version or a concurrent decision won
            ValidationError: Rejection without rationale
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id, claimed_role=actor_role)
            # Decisions rely on the version check alone: a row lock would let the
            # second caller act on the state the first one produced.
            process = self._load(process_id)

            if expected_version is not None and expected_version != process.row_version:
                raise ConflictError(
                    "The process changed since it was read",
                    details={"expected_version": expected_version, "row_version": process.row_version},
                )

            from_state = ProcessState(process.state)
            to_state = self._machine(process, actor).decide(approved, rationale=rationale)

            if approved and from_state == ProcessState.DOCS_IN_VALIDATION:
                pending = self.documents.pending_mandatory(process.id)
                if pending:
                    raise ConflictError(
                        f"Mandatory documents not approved: {', '.join(pending)}",
                        details={"pending_documents": pending},
                    )

            self._apply(process, to_state)
            self.decisions.record(
                process.id, from_state, to_state, approved, actor,
                rationale=rationale, provenance=provenance,
            )
            self.ledger.record(
                process.id,
                AuditEventKind.APPROVAL if approved else AuditEventKind.REJECTION,
                "Process approved" if approved else "Process rejected",
                actor=actor,
                details={
                    "from_state": from_state.value,
                    "to_state": to_state.value,
                    "rationale": rationale,
                },
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    def request_correction(
        self,
        process_id: UUID,
        rationale: str,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Return the process to the beneficiary for corrections.

        Raises:
            AuthorizationError: Actor is not a validator
            ConflictError: Process not in DOCS_IN_VALIDATION
            ValidationError: Empty rationale
        """
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            from_state = ProcessState(process.state)
            rule = self._machine(process, actor).transition(
                ProcessAction.REQUEST_CORRECTION, comment=rationale
            )

            self._apply(process, rule.to_state)
            self.decisions.record(
                process.id, from_state, rule.to_state, False, actor,
                rationale=rationale, provenance=provenance,
            )
            self.ledger.record(
                process.id,
                AuditEventKind.CORRECTION_REQUESTED,
                "Corrections requested",
                actor=actor,
                details={"rationale": rationale},
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    def sign(
        self,
        process_id: UUID,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """
        Render and sign the process document.

        The renderer runs inside the transaction; if it fails nothing is
        written and the process stays in DISBURSER_REVIEW.

        Raises:
            AuthorizationError: Actor is not a disburser
            ConflictError: Process not in DISBURSER_REVIEW
            DependencyError: Renderer failure
        """
        provenance = provenance or Provenance()
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            from_state = ProcessState(process.state)
            rule = self._machine(process, actor).transition(ProcessAction.SIGN)
            next_version = (process.pdf_version or 0) + 1

            snapshot = self._snapshot(process, actor, next_version)
            try:
                artifact = self.renderer.render(snapshot)
            except Exception as e:
                logger.error("PDF rendering failed for %s: %s", process.code, e)
                raise DependencyError("pdf renderer", str(e)) from e

            now = self.clock()
            process.signed = True
            process.signed_at = now
            process.signed_by_id = actor.id
            process.signature_hash = artifact.content_hash
            process.signature_ip = provenance.ip_address
            process.signature_user_agent = provenance.user_agent
            process.pdf_ref = artifact.artifact_ref
            process.pdf_hash = artifact.content_hash
            process.pdf_version = next_version
            self._apply(process, rule.to_state)

            self.db.add(PdfHistory(
                process_id=process.id,
                version=next_version,
                artifact_ref=artifact.artifact_ref,
                content_hash=artifact.content_hash,
                created_by_id=actor.id,
                created_at=now,
            ))
            self.ledger.record(
                process.id,
                AuditEventKind.SIGNATURE,
                "Process signed electronically",
                actor=actor,
                details={
                    "pdf_hash": artifact.content_hash,
                    "pdf_version": next_version,
                    "signature_ip": provenance.ip_address,
                },
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    def close(
        self,
        process_id: UUID,
        actor_id: UUID,
        provenance: Optional[Provenance] = None,
    ) -> Process:
        """Archive a signed process (closer only)."""
        with atomic(self.db):
            actor = resolve_actor(self.identity, actor_id)
            process = self._load(process_id, lock=True)

            from_state = ProcessState(process.state)
            rule = self._machine(process, actor).transition(ProcessAction.CLOSE)

            process.closed_at = self.clock()
            process.closed_by_id = actor.id
            self._apply(process, rule.to_state)
            self.ledger.record(
                process.id,
                AuditEventKind.CLOSURE,
                "Process finalized and closed",
                actor=actor,
                provenance=provenance,
            )

        self._log_transition(process, from_state, actor)
        return process

    # Queries

    def get(self, process_id: UUID, viewer_id: UUID) -> Process:
        """Fetch a process the viewer is allowed to see."""
        viewer = resolve_actor(self.identity, viewer_id)
        process = self._load(process_id)
        ensure_can_view(viewer, process)
        return process

    def timeline(
        self,
        process_id: UUID,
        viewer_id: UUID,
        viewer_role: Union[Role, str, None] = None,
    ) -> List[Dict[str, Any]]:
        """
        Audit events of a process in the order they happened.

        Beneficiary and landlord viewers only learn the role of each actor,
        never their identity.
        """
        viewer = resolve_actor(self.identity, viewer_id, claimed_role=viewer_role)
        process = self._load(process_id)
        ensure_can_view(viewer, process)

        redact = viewer.role in EXTERNAL_ROLES
        names: Dict[UUID, Optional[str]] = {}
        entries = []
        for event in self.ledger.events_for(process.id):
            details = event.details or {}
            actor = None
            if event.actor_role:
                actor = {"role": event.actor_role}
                if not redact and event.actor_id is not None:
                    actor["id"] = str(event.actor_id)
                    actor["name"] = self._user_name(event.actor_id, names)
            entries.append({
                "id": event.id,
                "kind": event.kind,
                "description": event.description,
                "occurred_at": event.created_at,
                "actor": actor,
                "observations": details.get("rationale") or details.get("reason"),
            })
        return entries

    def decision_history(self, process_id: UUID, viewer_id: UUID) -> List[Dict[str, Any]]:
        """Decisions of a process; landlords may not see them, beneficiaries see roles only."""
        viewer = resolve_actor(self.identity, viewer_id)
        if viewer.role == Role.LANDLORD:
            raise AuthorizationError("Not allowed to view decisions")
        process = self._load(process_id)
        ensure_can_view(viewer, process)

        redact = viewer.role in EXTERNAL_ROLES
        names: Dict[UUID, Optional[str]] = {}
        history = []
        for decision in self.decisions.decisions_for(process.id):
            actor = {"role": decision.actor_role}
            if not redact:
                actor["id"] = str(decision.actor_id)
                actor["name"] = self._user_name(decision.actor_id, names)
            history.append({
                "id": decision.id,
                "from_state": decision.from_state,
                "to_state": decision.to_state,
                "approved": decision.approved,
                "rationale": decision.rationale,
                "actor": actor,
                "created_at": decision.created_at,
            })
        return history

    def available_actions(self, process_id: UUID, actor_id: UUID) -> List[str]:
        """Actions the actor may attempt on the process right now."""
        actor = resolve_actor(self.identity, actor_id)
        process = self._load(process_id)
        ensure_can_view(actor, process)

        actions = self._machine(process, actor).get_available_actions()
        if actor.role == Role.BENEFICIARY and not is_owner(actor, process):
            actions = []
        return [action.value for action in actions]

    # Internals

    def _machine(self, process: Process, actor: UserInfo) -> ProcessStateMachine:
        return ProcessStateMachine(
            process_id=process.id,
            current_state=ProcessState(process.state),
            actor_role=actor.role,
        )

    def _apply(self, process: Process, to_state: ProcessState) -> None:
        """Write the new state and flush so a lost version race fails here."""
        process.state = to_state.value
        process.updated_at = self.clock()
        self.db.flush()

    def _load(self, process_id: UUID, lock: bool = False) -> Process:
        query = self.db.query(Process).filter(Process.id == process_id)
        if lock:
            # Locked reads must see the committed row, not the identity map
            query = query.with_for_update().populate_existing()
        process = query.first()
        if process is None:
            raise NotFoundError("Process", process_id)
        return process

    def _next_code(self, year: int) -> str:
        counter = self.db.query(ProcessCodeCounter).filter(
            ProcessCodeCounter.year == year
        ).with_for_update().first()
        if counter is None:
            counter = ProcessCodeCounter(year=year, last_value=0)
            self.db.add(counter)
        counter.last_value += 1
        self.db.flush()
        return f"{self.code_prefix}-{year}-{counter.last_value:06d}"

    def _snapshot(self, process: Process, actor: UserInfo, version: int) -> ProcessSnapshot:
        return ProcessSnapshot(
            process_id=process.id,
            code=process.code,
            form=dict(process.form or {}),
            beneficiary=_party(process.beneficiary),
            landlord=_party(process.landlord) if process.landlord is not None else None,
            version=version,
            signed_by={"id": str(actor.id), "name": actor.name, "role": actor.role.value},
        )

    def _user_name(self, user_id: UUID, cache: Dict[UUID, Optional[str]]) -> Optional[str]:
        if user_id not in cache:
            user = self.identity.get_user(user_id)
            cache[user_id] = user.name if user else None
        return cache[user_id]

    def _log_transition(self, process: Process, from_state: ProcessState, actor: UserInfo) -> None:
        audit_logger.info(
            "Transition: process=%s code=%s %s -> %s by=%s role=%s",
            process.id, process.code, from_state.value, process.state, actor.id, actor.role.value,
        )


def _party(user: Optional[User]) -> Dict[str, Any]:
    if user is None:
        return {}
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "national_id": user.national_id,
    }
