from functools import lru_cache
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from subsidy.adapters import DatabaseIdentityProvider, FilesystemStorage, ReportLabPdfRenderer, YamlCatalog
from subsidy.core.collaborators import (
    DocumentCatalog,
    DocumentStorage,
    IdentityProvider,
    PdfRenderer,
    Provenance,
    UserInfo,
)
from subsidy.core.config import get_settings
from subsidy.core.documents import DocumentGate
from subsidy.core.exceptions import AuthorizationError
from subsidy.core.ledger import AuditLedger
from subsidy.core.process.service import ProcessService
from subsidy.core.queries import ProcessQueryService
from subsidy.core.roles import Role
from subsidy.db.session import SessionLocal


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity(db: Session = Depends(get_db)) -> IdentityProvider:
    return DatabaseIdentityProvider(db)


@lru_cache
def get_storage() -> DocumentStorage:
    return FilesystemStorage(get_settings().storage_dir)


@lru_cache
def get_renderer() -> PdfRenderer:
    settings = get_settings()
    return ReportLabPdfRenderer(
        settings.pdf_output_dir,
        settings.pdf_company_name,
        settings.pdf_company_address,
    )


@lru_cache
def get_catalog() -> DocumentCatalog:
    return YamlCatalog.from_file(get_settings().catalog_path)


def get_process_service(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    storage: DocumentStorage = Depends(get_storage),
    renderer: PdfRenderer = Depends(get_renderer),
    catalog: DocumentCatalog = Depends(get_catalog),
) -> ProcessService:
    return ProcessService(
        db, identity, storage, renderer, catalog,
        code_prefix=get_settings().code_prefix,
    )


def get_document_gate(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    storage: DocumentStorage = Depends(get_storage),
    catalog: DocumentCatalog = Depends(get_catalog),
) -> DocumentGate:
    return DocumentGate(db, identity, storage, catalog)


def get_query_service(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
) -> ProcessQueryService:
    return ProcessQueryService(db, identity)


def get_ledger(db: Session = Depends(get_db)) -> AuditLedger:
    return AuditLedger(db)


def get_current_user(
    identity: IdentityProvider = Depends(get_identity),
    x_user_id: Optional[str] = Header(None),
) -> UserInfo:
    """Resolve the acting user from the ``X-User-Id`` header.

    Token issuance and verification happen upstream; this service only
    trusts the resolved user id.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    if not x_user_id:
        raise credentials_exception
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise credentials_exception

    user = identity.get_user(user_id)
    if user is None or not user.active:
        raise credentials_exception
    return user


def require_roles(*roles: Role):
    """Dependency factory restricting an endpoint to the given roles."""

    def checker(current_user: UserInfo = Depends(get_current_user)) -> UserInfo:
        if current_user.role not in roles:
            raise AuthorizationError(
                "Permission denied",
                details={"allowed_roles": [r.value for r in roles]},
            )
        return current_user

    return checker


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def get_provenance(request: Request) -> Provenance:
    return Provenance(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
