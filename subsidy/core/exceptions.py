"""Exception hierarchy for the subsidy process engine.

Every core operation either returns the updated entity or raises exactly one
of these. The API layer registers a single handler for ``SubsidyError`` and
uses ``status_code`` / ``code`` to build the response.

Usage:
    from subsidy.core.exceptions import NotFoundError, ConflictError

    raise NotFoundError("Process", process_id)
    raise ConflictError("Missing mandatory documents", details={"missing": [...]})
"""

from typing import Any, Dict, List, Optional


class SubsidyError(Exception):
    """Base class for all operational errors raised by the engine."""

    status_code = 500
    code = "SUBSIDY_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "detail": self.message,
            "code": self.code,
            "errors": self.details,
        }


class NotFoundError(SubsidyError):
    """A referenced process, user, document or catalog entry does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Process", "Beneficiary").
        resource_id: The identifier that was looked up.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ConflictError(SubsidyError):
    """A state precondition was violated.

    Wrong current state, missing mandatory documents, a superseded document
    or a concurrent modification that lost the race.
    """

    status_code = 409
    code = "CONFLICT"


class AuthorizationError(SubsidyError):
    """The acting user's role or ownership does not allow the operation."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"


class ValidationError(SubsidyError):
    """Malformed input: missing rationale, disallowed file format or size.

    Args:
        errors: Field name -> list of messages.
    """

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, errors: Dict[str, List[str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(message, details=errors)


class DependencyError(SubsidyError):
    """An external collaborator (storage, PDF renderer) failed.

    The transaction boundary guarantees the process is left unchanged.
    """

    status_code = 502
    code = "DEPENDENCY_FAILURE"

    def __init__(self, dependency: str, message: str):
        self.dependency = dependency
        super().__init__(f"{dependency} failed: {message}")
