"""Interfaces of the external collaborators consumed by the engine.

The services receive implementations through their constructors; default
adapters live in ``subsidy.adapters`` and tests pass in-memory fakes.
"""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Protocol, runtime_checkable
from uuid import UUID

from subsidy.common.config import CatalogEntry
from subsidy.core.roles import Role


@dataclass(frozen=True)
class UserInfo:
    """Identity as seen by the engine."""
    id: UUID
    role: Role
    active: bool = True
    name: Optional[str] = None


@dataclass(frozen=True)
class StoredObject:
    """Result of storing uploaded bytes."""
    ref: str
    content_hash: str
    size_bytes: int


@dataclass(frozen=True)
class RenderedArtifact:
    """Signed document produced by the PDF renderer."""
    artifact_ref: str
    content_hash: str


@dataclass(frozen=True)
class Provenance:
    """Request origin recorded next to decisions, signatures and events."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded file as received from the caller."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ProcessSnapshot:
    """Process data handed to the PDF renderer at signing time."""
    process_id: UUID
    code: str
    form: Dict[str, Any]
    beneficiary: Dict[str, Any]
    landlord: Optional[Dict[str, Any]]
    version: int
    signed_by: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class IdentityProvider(Protocol):
    def get_user(self, user_id: UUID) -> Optional[UserInfo]:
        ...

    def exists_with_role(self, user_id: UUID, role: Role) -> bool:
        ...


@runtime_checkable
class DocumentStorage(Protocol):
    def store(self, data: bytes, filename: str) -> StoredObject:
        ...

    def delete(self, ref: str) -> None:
        ...

    def exists(self, ref: str) -> bool:
        ...

    def open(self, ref: str) -> BinaryIO:
        ...


@runtime_checkable
class PdfRenderer(Protocol):
    def render(self, snapshot: ProcessSnapshot) -> RenderedArtifact:
        ...


@runtime_checkable
class DocumentCatalog(Protocol):
    def get_entry(self, doc_type: str) -> Optional[CatalogEntry]:
        ...

    def list_mandatory(self) -> List[str]:
        ...

    def list_entries(self) -> List[CatalogEntry]:
        ...
