"""Role definitions and static permission tables.

Six roles take part in a subsidy process:

1. Beneficiary - subject of the subsidy, owns the form and the documents
2. Landlord - optional party, read-only access to its own processes
3. Validator - creates processes, reviews documents, requests corrections
4. Director - second review after document validation
5. Disburser - final review and electronic signature
6. Closer - archives signed processes

Permissions are plain lookup tables (action -> frozenset of roles) checked
at the start of every operation.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union


class Role(str, Enum):
    """Roles known to the process engine."""

    BENEFICIARY = "beneficiary"
    LANDLORD = "landlord"
    VALIDATOR = "validator"
    DIRECTOR = "director"
    DISBURSER = "disburser"
    CLOSER = "closer"


class DocumentAction(str, Enum):
    """Actions on documents guarded by role."""

    UPLOAD = "upload"
    VIEW = "view"
    DOWNLOAD = "download"
    VALIDATE = "validate"
    DELETE = "delete"


# Roles that may record approve/reject decisions
APPROVER_ROLES: FrozenSet[Role] = frozenset({
    Role.VALIDATOR,
    Role.DIRECTOR,
    Role.DISBURSER,
})

# Roles allowed to open a new process on behalf of a beneficiary
CREATOR_ROLES: FrozenSet[Role] = frozenset({Role.VALIDATOR})

# Parties to a process; they see roles but never the names of staff
EXTERNAL_ROLES: FrozenSet[Role] = frozenset({Role.BENEFICIARY, Role.LANDLORD})

STAFF_ROLES: FrozenSet[Role] = frozenset(Role) - EXTERNAL_ROLES

DOCUMENT_PERMISSIONS: Dict[DocumentAction, FrozenSet[Role]] = {
    DocumentAction.UPLOAD: frozenset({Role.BENEFICIARY, Role.VALIDATOR}),
    DocumentAction.VIEW: frozenset(Role) - {Role.LANDLORD},
    DocumentAction.DOWNLOAD: frozenset(Role) - {Role.LANDLORD},
    DocumentAction.VALIDATE: frozenset({Role.VALIDATOR}),
    DocumentAction.DELETE: frozenset({Role.BENEFICIARY}),
}


def coerce_role(value: Union[str, Role, None]) -> Optional[Role]:
    """Parse a role from its string value; ``None`` stays ``None``."""
    if value is None or isinstance(value, Role):
        return value
    try:
        return Role(value.lower())
    except ValueError:
        raise ValueError(f"Unknown role: {value}")


def role_in(role: Optional[Role], allowed: Iterable[Role]) -> bool:
    """Check role membership, treating a missing role as no access."""
    if role is None:
        return False
    return role in set(allowed)


def can_document(role: Optional[Role], action: DocumentAction) -> bool:
    """Check whether a role may perform a document action at all."""
    return role_in(role, DOCUMENT_PERMISSIONS.get(action, frozenset()))
