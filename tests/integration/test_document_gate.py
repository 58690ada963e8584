"""Integration tests for the document gate."""

import uuid

import pytest

from subsidy.core.collaborators import Provenance
from subsidy.core.documents import check_file
from subsidy.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from subsidy.core.roles import Role
from subsidy.db.models import AuditEvent, AuditEventKind, Document, DownloadRecord, ValidationStatus

from tests.factories import (
    PDF_BYTES,
    create_submitted_process,
    create_user,
    make_file,
)


pytestmark = pytest.mark.integration


@pytest.fixture
def draft(service, users):
    return service.create(
        users[Role.BENEFICIARY].id,
        users[Role.VALIDATOR].id,
        landlord_id=users[Role.LANDLORD].id,
    )


@pytest.fixture
def in_validation(service, users):
    process = create_submitted_process(service, users)
    return service.start_validation(process.id, users[Role.VALIDATOR].id)


class TestCheckFile:
    """Format, size and extension checks against a catalog entry."""

    def test_accepts_matching_file(self, catalog):
        check_file(make_file("id.jpg", "image/jpeg"), catalog.get_entry("national_id"))

    def test_format_not_allowed(self, catalog):
        with pytest.raises(ValidationError) as exc_info:
            check_file(make_file("contract.png", "image/png"), catalog.get_entry("lease_contract"))
        assert "not allowed" in exc_info.value.errors["file"][0]

    def test_too_large(self, catalog):
        entry = catalog.get_entry("national_id")
        big = make_file(data=b"x" * (entry.max_size_bytes + 1))
        with pytest.raises(ValidationError) as exc_info:
            check_file(big, entry)
        assert any("maximum size" in msg for msg in exc_info.value.errors["file"])

    def test_extension_mismatch(self, catalog):
        with pytest.raises(ValidationError) as exc_info:
            check_file(make_file("id.png", "application/pdf"), catalog.get_entry("national_id"))
        assert exc_info.value.errors["file"] == ["File extension does not match its type"]

    def test_empty_file(self, catalog):
        with pytest.raises(ValidationError):
            check_file(make_file(data=b""), catalog.get_entry("national_id"))


class TestUpload:
    """Test DocumentGate.upload."""

    def test_upload_round_trip(self, service, users, draft, storage):
        beneficiary = users[Role.BENEFICIARY]
        document = service.documents.upload(
            draft.id, "national_id", make_file("cedula.pdf"), beneficiary.id,
            Provenance(ip_address="192.168.1.4"),
        )

        assert document.version == 1
        assert document.active
        assert document.validation_status == ValidationStatus.PENDING.value
        assert document.original_filename == "cedula.pdf"
        assert document.size_bytes == len(PDF_BYTES)
        assert storage.objects[document.stored_ref] == PDF_BYTES

        info = service.documents.download(document.id, beneficiary.id)
        assert info == {"ref": document.stored_ref, "filename": "cedula.pdf", "mime_type": "application/pdf"}
        assert storage.open(info["ref"]).read() == PDF_BYTES

    def test_new_version_supersedes_old(self, db_session, service, users, draft):
        beneficiary = users[Role.BENEFICIARY]
        first = service.documents.upload(draft.id, "lease_contract", make_file("v1.pdf"), beneficiary.id)
        second = service.documents.upload(draft.id, "lease_contract", make_file("v2.pdf"), beneficiary.id)
        third = service.documents.upload(draft.id, "lease_contract", make_file("v3.pdf"), beneficiary.id)

        db_session.expire_all()
        rows = db_session.query(Document).filter(
            Document.process_id == draft.id, Document.catalog_type == "lease_contract"
        ).all()
        active = [doc for doc in rows if doc.active]

        assert len(rows) == 3
        assert [doc.id for doc in active] == [third.id]
        assert third.version == 3
        assert {first.id, second.id} == {doc.id for doc in rows if not doc.active}

        assert [d.id for d in service.documents.list_active(draft.id)] == [third.id]
        assert len(service.documents.list_all(draft.id)) == 3

    def test_validator_may_upload(self, service, users, draft):
        document = service.documents.upload(
            draft.id, "other", make_file("extra.png", "image/png"), users[Role.VALIDATOR].id
        )
        assert document.uploaded_by_id == users[Role.VALIDATOR].id

    def test_other_beneficiary_cannot_upload(self, db_session, service, draft):
        stranger = create_user(db_session, role=Role.BENEFICIARY)
        db_session.commit()
        with pytest.raises(AuthorizationError):
            service.documents.upload(draft.id, "national_id", make_file(), stranger.id)

    def test_director_cannot_upload(self, service, users, draft):
        with pytest.raises(AuthorizationError):
            service.documents.upload(draft.id, "national_id", make_file(), users[Role.DIRECTOR].id)

    def test_unknown_type(self, service, users, draft):
        with pytest.raises(NotFoundError):
            service.documents.upload(draft.id, "passport", make_file(), users[Role.BENEFICIARY].id)

    def test_upload_after_submission(self, db_session, service, users):
        process = create_submitted_process(service, users)
        with pytest.raises(ConflictError):
            service.documents.upload(process.id, "other", make_file(), users[Role.BENEFICIARY].id)
        assert not db_session.in_transaction()

    def test_invalid_file_stores_nothing(self, service, users, draft, storage):
        with pytest.raises(ValidationError):
            service.documents.upload(
                draft.id, "lease_contract", make_file("c.jpg", "image/jpeg"), users[Role.BENEFICIARY].id
            )
        assert storage.objects == {}

    def test_storage_failure(self, service, users, draft, storage):
        storage.fail_store = True
        with pytest.raises(DependencyError):
            service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)
        assert service.documents.list_active(draft.id) == []

    def test_database_failure_removes_stored_bytes(self, db_session, service, users, draft, storage, monkeypatch):
        def broken_record(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(service.documents.ledger, "record", broken_record)

        with pytest.raises(RuntimeError):
            service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)

        assert storage.objects == {}
        assert len(storage.deleted) == 1
        assert db_session.query(Document).count() == 0

    def test_upload_emits_edit_event(self, db_session, service, users, draft):
        document = service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)
        event = db_session.query(AuditEvent).filter(
            AuditEvent.process_id == draft.id,
        ).order_by(AuditEvent.id.desc()).first()

        assert event.kind == AuditEventKind.EDIT.value
        assert event.details["document_id"] == str(document.id)
        assert event.details["version"] == 1


class TestValidate:
    """Test DocumentGate.validate."""

    def test_approve_and_reject(self, service, users, in_validation):
        validator = users[Role.VALIDATOR]
        first, second = service.documents.list_active(in_validation.id)[:2]

        approved = service.documents.validate(first.id, True, None, validator.id)
        rejected = service.documents.validate(second.id, False, "Documento vencido", validator.id)

        assert approved.validation_status == ValidationStatus.APPROVED.value
        assert approved.validated_by_id == validator.id
        assert rejected.validation_status == ValidationStatus.REJECTED.value
        assert rejected.rejection_reason == "Documento vencido"

    def test_reject_requires_reason(self, service, users, in_validation):
        document = service.documents.list_active(in_validation.id)[0]
        with pytest.raises(ValidationError):
            service.documents.validate(document.id, False, " ", users[Role.VALIDATOR].id)

    def test_validator_only(self, service, users, in_validation):
        document = service.documents.list_active(in_validation.id)[0]
        with pytest.raises(AuthorizationError):
            service.documents.validate(document.id, True, None, users[Role.DIRECTOR].id)

    def test_wrong_state(self, service, users, draft):
        document = service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)
        with pytest.raises(ConflictError):
            service.documents.validate(document.id, True, None, users[Role.VALIDATOR].id)

    def test_superseded_document(self, service, users):
        beneficiary = users[Role.BENEFICIARY]
        validator = users[Role.VALIDATOR]
        process = create_submitted_process(service, users)
        service.start_validation(process.id, validator.id)
        old = service.documents.list_active(process.id)[0]

        service.request_correction(process.id, "Reemplazar cédula", validator.id)
        service.documents.upload(process.id, old.catalog_type, make_file("nuevo.pdf"), beneficiary.id)
        service.submit(process.id, beneficiary.id)

        with pytest.raises(ConflictError, match="superseded"):
            service.documents.validate(old.id, True, None, validator.id)

    def test_unknown_document(self, service, users):
        with pytest.raises(NotFoundError):
            service.documents.validate(uuid.uuid4(), True, None, users[Role.VALIDATOR].id)

    def test_pending_mandatory(self, service, users, in_validation, catalog):
        validator = users[Role.VALIDATOR]
        assert len(service.documents.pending_mandatory(in_validation.id)) == 6

        documents = service.documents.list_active(in_validation.id)
        service.documents.validate(documents[0].id, True, None, validator.id)
        pending = service.documents.pending_mandatory(in_validation.id)

        assert len(pending) == 5
        assert catalog.get_entry(documents[0].catalog_type).name not in pending


class TestDelete:
    """Test DocumentGate.delete."""

    def test_delete_in_draft(self, db_session, service, users, draft, storage):
        beneficiary = users[Role.BENEFICIARY]
        document = service.documents.upload(draft.id, "national_id", make_file(), beneficiary.id)
        service.documents.download(document.id, beneficiary.id)
        ref = document.stored_ref

        service.documents.delete(document.id, beneficiary.id)

        assert db_session.query(Document).count() == 0
        assert db_session.query(DownloadRecord).count() == 0
        assert ref not in storage.objects
        kinds = [e.kind for e in service.ledger.events_for(draft.id)]
        assert kinds.count(AuditEventKind.EDIT.value) == 2

    def test_delete_after_submit(self, service, users):
        process = create_submitted_process(service, users)
        document = service.documents.list_active(process.id)[0]
        with pytest.raises(ConflictError):
            service.documents.delete(document.id, users[Role.BENEFICIARY].id)

    def test_delete_owner_only(self, service, users, draft):
        document = service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)
        with pytest.raises(AuthorizationError):
            service.documents.delete(document.id, users[Role.VALIDATOR].id)

    def test_storage_failure_keeps_record(self, db_session, service, users, draft, storage):
        beneficiary = users[Role.BENEFICIARY]
        document = service.documents.upload(draft.id, "national_id", make_file(), beneficiary.id)
        storage.fail_delete = True

        with pytest.raises(DependencyError):
            service.documents.delete(document.id, beneficiary.id)

        db_session.expire_all()
        assert db_session.query(Document).filter(Document.id == document.id).count() == 1


class TestViewing:
    """Document visibility."""

    def test_landlord_cannot_list(self, service, users, draft):
        with pytest.raises(AuthorizationError):
            service.documents.list_for_viewer(draft.id, users[Role.LANDLORD].id)

    def test_other_beneficiary_cannot_download(self, db_session, service, users, draft):
        document = service.documents.upload(draft.id, "national_id", make_file(), users[Role.BENEFICIARY].id)
        stranger = create_user(db_session, role=Role.BENEFICIARY)
        db_session.commit()
        with pytest.raises(AuthorizationError):
            service.documents.download(document.id, stranger.id)

    def test_download_of_missing_content(self, service, users, draft, storage):
        beneficiary = users[Role.BENEFICIARY]
        document = service.documents.upload(draft.id, "national_id", make_file(), beneficiary.id)
        storage.objects.clear()
        with pytest.raises(NotFoundError):
            service.documents.download(document.id, beneficiary.id)

    def test_history_listing(self, service, users, draft):
        beneficiary = users[Role.BENEFICIARY]
        service.documents.upload(draft.id, "national_id", make_file(), beneficiary.id)
        service.documents.upload(draft.id, "national_id", make_file(), beneficiary.id)

        assert len(service.documents.list_for_viewer(draft.id, beneficiary.id)) == 1
        assert len(service.documents.list_for_viewer(draft.id, beneficiary.id, include_history=True)) == 2
