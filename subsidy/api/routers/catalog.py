"""Reference data endpoints: document types, states and roles."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from subsidy.api.deps import get_catalog, get_current_user
from subsidy.core.collaborators import DocumentCatalog, UserInfo
from subsidy.core.process.states import TERMINAL_STATES, ProcessState
from subsidy.core.roles import Role

router = APIRouter(prefix="/catalog", tags=["catalog"])


class DocumentTypeResponse(BaseModel):
    type: str
    name: str
    description: str
    mandatory: bool
    allowed_formats: List[str]
    max_size_bytes: int
    validity_days: Optional[int]
    order: int

    class Config:
        from_attributes = True


class StateResponse(BaseModel):
    id: str
    terminal: bool


@router.get("/document-types", response_model=List[DocumentTypeResponse])
def list_document_types(
    current_user: UserInfo = Depends(get_current_user),
    catalog: DocumentCatalog = Depends(get_catalog),
):
    """Active document types in display order."""
    return catalog.list_entries()


@router.get("/states", response_model=List[StateResponse])
def list_states(current_user: UserInfo = Depends(get_current_user)):
    return [StateResponse(id=s.value, terminal=s in TERMINAL_STATES) for s in ProcessState]


@router.get("/roles", response_model=List[str])
def list_roles(current_user: UserInfo = Depends(get_current_user)):
    return [r.value for r in Role]
