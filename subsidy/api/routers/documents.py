"""Document API endpoints."""

from typing import List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from subsidy.api.deps import get_current_user, get_document_gate, get_provenance, get_storage
from subsidy.api.schemas.common import error_responses
from subsidy.core.collaborators import DocumentStorage, Provenance, UploadedFile, UserInfo
from subsidy.core.documents import DocumentGate

router = APIRouter(tags=["documents"], responses=error_responses(403, 404, 409, 422, 502))


# Schemas
class DocumentResponse(BaseModel):
    id: UUID
    process_id: UUID
    catalog_type: str
    original_filename: str
    content_hash: str
    size_bytes: int
    mime_type: str
    version: int
    active: bool
    validation_status: str
    rejection_reason: Optional[str]
    uploaded_by_id: UUID
    validated_by_id: Optional[UUID]
    validated_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentValidation(BaseModel):
    approved: bool
    reason: Optional[str] = None


# Endpoints
@router.post(
    "/processes/{process_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    process_id: UUID,
    catalog_type: str = Form(...),
    file: UploadFile = File(...),
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
    provenance: Provenance = Depends(get_provenance),
):
    """Upload a new version of a document type."""
    data = await file.read()
    uploaded = UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return gate.upload(process_id, catalog_type, uploaded, current_user.id, provenance)


@router.get("/processes/{process_id}/documents", response_model=List[DocumentResponse])
def list_documents(
    process_id: UUID,
    include_history: bool = Query(False, description="Include superseded versions"),
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
):
    return gate.list_for_viewer(process_id, current_user.id, include_history=include_history)


@router.get("/documents/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
):
    return gate.get_for_viewer(document_id, current_user.id)


@router.get("/documents/{document_id}/download")
def download_document(
    document_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
    storage: DocumentStorage = Depends(get_storage),
    provenance: Provenance = Depends(get_provenance),
):
    info = gate.download(document_id, current_user.id, provenance)
    return StreamingResponse(
        storage.open(info["ref"]),
        media_type=info["mime_type"],
        headers={"Content-Disposition": f'attachment; filename="{info["filename"]}"'},
    )


@router.post("/documents/{document_id}/validate", response_model=DocumentResponse)
def validate_document(
    document_id: UUID,
    body: DocumentValidation,
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
    provenance: Provenance = Depends(get_provenance),
):
    """Approve or reject a single document (validator only)."""
    return gate.validate(document_id, body.approved, body.reason, current_user.id, provenance)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    gate: DocumentGate = Depends(get_document_gate),
    provenance: Provenance = Depends(get_provenance),
):
    gate.delete(document_id, current_user.id, provenance)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
