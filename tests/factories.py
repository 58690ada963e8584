"""Factory functions for creating test database records and payloads.

Each record factory creates a model instance, adds it to the session, and
flushes so that database-generated fields (id, created_at, etc.) are
populated. All fields have sensible defaults but can be overridden via
keyword arguments.

Usage::

    from tests.factories import create_user, make_file

    def test_something(db_session):
        user = create_user(db_session, role=Role.BENEFICIARY, name="Ana")
        assert user.role == "beneficiary"
"""

import uuid
from typing import Dict, Optional

from sqlalchemy.orm import Session

from subsidy.core.collaborators import UploadedFile
from subsidy.core.roles import Role
from subsidy.db.models import User


_counter = 0

# Smallest byte string the gate accepts as a PDF upload
PDF_BYTES = b"%PDF-1.4\n%test\n"

VALID_FORM = {
    "address": "Av. Libertad 1234, Depto 56",
    "monthly_rent": 350000,
    "household_size": 3,
}


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


def create_user(
    session: Session,
    *,
    role: Role = Role.BENEFICIARY,
    name: Optional[str] = None,
    email: Optional[str] = None,
    national_id: Optional[str] = None,
    is_active: bool = True,
) -> User:
    n = _next_id()
    user = User(
        id=uuid.uuid4(),
        email=email or f"{role.value}-{n}@test.local",
        name=name or f"Test {role.value.capitalize()} {n}",
        national_id=national_id,
        role=role.value,
        is_active=is_active,
    )
    session.add(user)
    session.flush()
    return user


def create_staff(session: Session) -> Dict[Role, User]:
    """One active user per role."""
    return {role: create_user(session, role=role) for role in Role}


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


def make_file(
    filename: str = "document.pdf",
    content_type: str = "application/pdf",
    data: bytes = PDF_BYTES,
) -> UploadedFile:
    return UploadedFile(filename=filename, content_type=content_type, data=data)


def upload_mandatory(service, process_id, actor_id) -> list:
    """Upload one PDF for every mandatory catalog type."""
    documents = []
    for doc_type in service.catalog.list_mandatory():
        documents.append(
            service.documents.upload(
                process_id, doc_type, make_file(f"{doc_type}.pdf"), actor_id
            )
        )
    return documents


def approve_documents(service, process_id, validator_id) -> None:
    """Approve every active document of a process."""
    for document in service.documents.list_active(process_id):
        service.documents.validate(document.id, True, None, validator_id)


# ---------------------------------------------------------------------------
# Workflow shortcuts
# ---------------------------------------------------------------------------


def create_submitted_process(service, users: Dict[Role, User], *, landlord: bool = True):
    """A process with complete form and documents, submitted by its beneficiary."""
    beneficiary = users[Role.BENEFICIARY]
    process = service.create(
        beneficiary.id,
        users[Role.VALIDATOR].id,
        landlord_id=users[Role.LANDLORD].id if landlord else None,
    )
    service.update_form(process.id, dict(VALID_FORM), beneficiary.id)
    upload_mandatory(service, process.id, beneficiary.id)
    return service.submit(process.id, beneficiary.id)


def advance_to_docs_validated(service, users: Dict[Role, User]):
    process = create_submitted_process(service, users)
    validator = users[Role.VALIDATOR]
    service.start_validation(process.id, validator.id)
    approve_documents(service, process.id, validator.id)
    return service.make_decision(process.id, True, "Documentos conformes", validator.id)


def advance_to_disburser_review(service, users: Dict[Role, User]):
    process = advance_to_docs_validated(service, users)
    director = users[Role.DIRECTOR]
    service.make_decision(process.id, True, "Cumple requisitos", director.id)
    return service.make_decision(process.id, True, "Aprobado por dirección", director.id)


def advance_to_signed(service, users: Dict[Role, User]):
    process = advance_to_disburser_review(service, users)
    return service.sign(process.id, users[Role.DISBURSER].id)
