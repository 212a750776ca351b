from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.profile import ProfileStatus
from src.consular.domain.models.service_request import (
    NoteType,
    RequestNote,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
)
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.security import get_current_user, require_roles
from src.consular.services.requests.service import RequestQuery, request_service
from src.consular.tenancy import organization_dependency

router = APIRouter(
    prefix="/requests",
    tags=["requests"],
    dependencies=[Depends(organization_dependency)],
)

require_staff = require_roles(*REVIEWER_ROLES)


class RequestCreateRequest(BaseModel):
    service_id: UUID
    profile_id: Optional[UUID] = None
    form_data: Dict[str, Any] = Field(default_factory=dict)
    document_ids: List[UUID] = Field(default_factory=list)
    priority: RequestPriority = RequestPriority.STANDARD
    appointment_id: Optional[UUID] = None


class RequestUpdateRequest(BaseModel):
    form_data: Optional[Dict[str, Any]] = None
    document_ids: Optional[List[UUID]] = None


class AssignRequest(BaseModel):
    agent_id: UUID


class ReviewRequest(BaseModel):
    status: RequestStatus
    note: Optional[str] = None


class NoteCreateRequest(BaseModel):
    content: str = Field(min_length=1)
    type: NoteType = NoteType.INTERNAL


class RegistrationValidationRequest(BaseModel):
    status: ProfileStatus
    notes: Optional[str] = None


class RequestListResponse(BaseModel):
    items: List[ServiceRequest]
    total: int
    page: int
    limit: int


class RequestStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_category: Dict[str, int]
    completed_today: int
    pending_urgent: int


@router.post("/", response_model=ServiceRequest, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RequestCreateRequest,
    current_user: User = Depends(get_current_user),
) -> ServiceRequest:
    return request_service.create(
        current_user,
        service_id=payload.service_id,
        profile_id=payload.profile_id,
        form_data=payload.form_data,
        document_ids=payload.document_ids,
        priority=payload.priority,
        appointment_id=payload.appointment_id,
    )


@router.get("/", response_model=RequestListResponse)
async def list_requests(
    status_filter: Optional[List[RequestStatus]] = Query(None, alias="status"),
    category: Optional[List[ServiceCategory]] = Query(None),
    priority: Optional[List[RequestPriority]] = Query(None),
    assigned_to_id: Optional[UUID] = Query(None),
    organization_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
) -> RequestListResponse:
    """Role-scoped listing: citizens see their own requests, staff their organization's."""

    result = request_service.list(
        current_user,
        RequestQuery(
            statuses=status_filter or (),
            categories=category or (),
            priorities=priority or (),
            assigned_to_id=assigned_to_id,
            organization_id=organization_id,
            search=search,
            page=page,
            limit=limit,
            sort_by=sort_by,
            descending=sort_order == "desc",
        ),
    )
    return RequestListResponse(items=result.items, total=result.total, page=result.page, limit=result.limit)


@router.get("/stats", response_model=RequestStatsResponse)
async def request_stats(
    organization_id: Optional[UUID] = Query(None),
    current_user: User = Depends(require_staff),
) -> RequestStatsResponse:
    stats = request_service.stats(current_user, organization_id=organization_id)
    return RequestStatsResponse(
        total=stats.total,
        by_status=stats.by_status,
        by_priority=stats.by_priority,
        by_category=stats.by_category,
        completed_today=stats.completed_today,
        pending_urgent=stats.pending_urgent,
    )


@router.get("/{request_id}", response_model=ServiceRequest)
async def get_request(request_id: UUID, current_user: User = Depends(get_current_user)) -> ServiceRequest:
    return request_service.get_request_for(current_user, request_id)


@router.patch("/{request_id}", response_model=ServiceRequest)
async def update_request(
    request_id: UUID,
    payload: RequestUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> ServiceRequest:
    return request_service.update_draft(
        current_user,
        request_id,
        form_data=payload.form_data,
        document_ids=payload.document_ids,
    )


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(request_id: UUID, current_user: User = Depends(get_current_user)) -> None:
    """Only the owner of a DRAFT request may delete it."""

    request_service.delete(current_user, request_id)


@router.post("/{request_id}/submit", response_model=ServiceRequest)
async def submit_request(request_id: UUID, current_user: User = Depends(get_current_user)) -> ServiceRequest:
    return request_service.submit(current_user, request_id)


@router.post("/{request_id}/assign", response_model=ServiceRequest)
async def assign_request(
    request_id: UUID,
    payload: AssignRequest,
    current_user: User = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> ServiceRequest:
    return request_service.assign(current_user, request_id, payload.agent_id)


@router.post("/{request_id}/review", response_model=ServiceRequest)
async def review_request(
    request_id: UUID,
    payload: ReviewRequest,
    current_user: User = Depends(require_staff),
) -> ServiceRequest:
    return request_service.review(current_user, request_id, outcome=payload.status, note=payload.note)


@router.post("/{request_id}/complete", response_model=ServiceRequest)
async def complete_request(request_id: UUID, current_user: User = Depends(require_staff)) -> ServiceRequest:
    return request_service.complete(current_user, request_id)


@router.post("/{request_id}/notes", response_model=RequestNote, status_code=status.HTTP_201_CREATED)
async def add_request_note(
    request_id: UUID,
    payload: NoteCreateRequest,
    current_user: User = Depends(require_staff),
) -> RequestNote:
    return request_service.add_note(current_user, request_id, content=payload.content, type=payload.type)


@router.post("/{request_id}/validate-registration", response_model=ServiceRequest)
async def validate_registration(
    request_id: UUID,
    payload: RegistrationValidationRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> ServiceRequest:
    return request_service.validate_registration(
        current_user,
        request_id,
        status=payload.status,
        notes=payload.notes,
    )
