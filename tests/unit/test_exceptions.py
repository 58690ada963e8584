"""Tests for the engine exception hierarchy."""

from subsidy.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    SubsidyError,
    ValidationError,
)
from subsidy.core.process.machine import PermissionDeniedError, TransitionError
from subsidy.core.process.states import ProcessAction, ProcessState
from subsidy.core.roles import Role


class TestExceptionHierarchy:

    def test_status_codes(self):
        assert NotFoundError("Process").status_code == 404
        assert ConflictError("x").status_code == 409
        assert AuthorizationError("x").status_code == 403
        assert ValidationError({"f": ["bad"]}).status_code == 422
        assert DependencyError("storage", "down").status_code == 502

    def test_all_derive_from_base(self):
        for exc in (
            NotFoundError("Process"),
            ConflictError("x"),
            AuthorizationError("x"),
            ValidationError({}),
            DependencyError("storage", "down"),
        ):
            assert isinstance(exc, SubsidyError)

    def test_machine_errors_map_to_kinds(self):
        assert issubclass(TransitionError, ConflictError)
        assert issubclass(PermissionDeniedError, AuthorizationError)


class TestExceptionPayloads:

    def test_not_found_message(self):
        exc = NotFoundError("Beneficiary", "abc")
        assert exc.message == "Beneficiary id=abc not found"
        assert exc.resource == "Beneficiary"

    def test_to_dict(self):
        exc = ConflictError("Missing documents", details={"missing_documents": ["Cédula de Identidad"]})
        assert exc.to_dict() == {
            "error": "ConflictError",
            "detail": "Missing documents",
            "code": "CONFLICT",
            "errors": {"missing_documents": ["Cédula de Identidad"]},
        }

    def test_validation_errors_exposed(self):
        exc = ValidationError({"rationale": ["required"]})
        assert exc.errors == {"rationale": ["required"]}
        assert exc.to_dict()["errors"] == {"rationale": ["required"]}

    def test_dependency_names_collaborator(self):
        exc = DependencyError("pdf renderer", "timeout")
        assert exc.dependency == "pdf renderer"
        assert exc.message == "pdf renderer failed: timeout"

    def test_transition_error_details(self):
        exc = TransitionError("nope", ProcessState.SIGNED, ProcessAction.SUBMIT)
        assert exc.details == {"state": "signed", "action": "submit"}

    def test_permission_denied_lists_allowed_roles_sorted(self):
        exc = PermissionDeniedError(Role.CLOSER, ProcessAction.APPROVE, [Role.VALIDATOR, Role.DIRECTOR])
        assert exc.details["allowed_roles"] == ["director", "validator"]
