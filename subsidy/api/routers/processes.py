"""Process workflow API endpoints."""

from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from subsidy.api.deps import (
    get_current_user,
    get_process_service,
    get_provenance,
    get_query_service,
)
from subsidy.api.schemas.common import PaginatedResponse, error_responses
from subsidy.core.collaborators import Provenance, UserInfo
from subsidy.core.config import get_settings
from subsidy.core.process.service import ProcessService
from subsidy.core.queries import ProcessQueryService

router = APIRouter(
    prefix="/processes",
    tags=["processes"],
    responses=error_responses(403, 404, 409, 422, 502),
)
settings = get_settings()


# Schemas
class ProcessResponse(BaseModel):
    id: UUID
    code: str
    state: str
    beneficiary_id: UUID
    landlord_id: Optional[UUID]
    form: Optional[Dict[str, Any]]
    signed: bool
    pdf_version: int
    pdf_hash: Optional[str]
    signed_at: Optional[datetime]
    submitted_at: Optional[datetime]
    closed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    row_version: int

    class Config:
        from_attributes = True


class ProcessCreate(BaseModel):
    beneficiary_id: UUID
    landlord_id: Optional[UUID] = None


class FormUpdate(BaseModel):
    form: Dict[str, Any]


class DecisionRequest(BaseModel):
    approved: bool
    rationale: str = Field(
        ...,
        min_length=settings.rationale_min_length,
        max_length=settings.rationale_max_length,
    )
    expected_version: Optional[int] = Field(None, description="row_version the decision is based on")


class CorrectionRequest(BaseModel):
    rationale: str = Field(
        ...,
        min_length=settings.rationale_min_length,
        max_length=settings.rationale_max_length,
    )


class TimelineActor(BaseModel):
    role: str
    id: Optional[str] = None
    name: Optional[str] = None


class TimelineEntry(BaseModel):
    id: int
    kind: str
    description: str
    occurred_at: datetime
    actor: Optional[TimelineActor]
    observations: Optional[str]


class DecisionResponse(BaseModel):
    id: int
    from_state: str
    to_state: str
    approved: bool
    rationale: Optional[str]
    actor: TimelineActor
    created_at: datetime


class ActionsResponse(BaseModel):
    state: str
    actions: List[str]


# Endpoints
@router.get("", response_model=PaginatedResponse[ProcessResponse])
def list_processes(
    current_user: UserInfo = Depends(get_current_user),
    queries: ProcessQueryService = Depends(get_query_service),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    state: Optional[str] = None,
    search: Optional[str] = None,
):
    """List the processes visible to the current user."""
    result = queries.list_processes(
        current_user.id, state=state, search=search, page=page, per_page=per_page
    )
    return PaginatedResponse[ProcessResponse].from_page(result, ProcessResponse.model_validate)


@router.post("", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def create_process(
    body: ProcessCreate,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    """Open a new process for a beneficiary (validator only)."""
    return service.create(
        body.beneficiary_id,
        current_user.id,
        landlord_id=body.landlord_id,
        provenance=provenance,
    )


@router.get("/{process_id}", response_model=ProcessResponse)
def get_process(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
):
    return service.get(process_id, current_user.id)


@router.put("/{process_id}/form", response_model=ProcessResponse)
def update_form(
    process_id: UUID,
    body: FormUpdate,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.update_form(process_id, body.form, current_user.id, provenance)


@router.post("/{process_id}/submit", response_model=ProcessResponse)
def submit_process(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.submit(process_id, current_user.id, provenance)


@router.post("/{process_id}/start-validation", response_model=ProcessResponse)
def start_validation(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.start_validation(process_id, current_user.id, provenance)


@router.post("/{process_id}/decision", response_model=ProcessResponse)
def make_decision(
    process_id: UUID,
    body: DecisionRequest,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    """Approve or reject the process in its current review stage."""
    return service.make_decision(
        process_id,
        body.approved,
        body.rationale,
        current_user.id,
        current_user.role,
        expected_version=body.expected_version,
        provenance=provenance,
    )


@router.post("/{process_id}/correction", response_model=ProcessResponse)
def request_correction(
    process_id: UUID,
    body: CorrectionRequest,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.request_correction(process_id, body.rationale, current_user.id, provenance)


@router.post("/{process_id}/sign", response_model=ProcessResponse)
def sign_process(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.sign(process_id, current_user.id, provenance)


@router.post("/{process_id}/close", response_model=ProcessResponse)
def close_process(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
    provenance: Provenance = Depends(get_provenance),
):
    return service.close(process_id, current_user.id, provenance)


@router.get("/{process_id}/timeline", response_model=List[TimelineEntry])
def get_timeline(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
):
    return service.timeline(process_id, current_user.id)


@router.get("/{process_id}/decisions", response_model=List[DecisionResponse])
def get_decisions(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
):
    return service.decision_history(process_id, current_user.id)


@router.get("/{process_id}/actions", response_model=ActionsResponse)
def get_available_actions(
    process_id: UUID,
    current_user: UserInfo = Depends(get_current_user),
    service: ProcessService = Depends(get_process_service),
):
    process = service.get(process_id, current_user.id)
    return ActionsResponse(
        state=process.state,
        actions=service.available_actions(process_id, current_user.id),
    )
