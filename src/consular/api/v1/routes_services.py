from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.consular.domain.models.consular_service import ConsularService, ServiceCategory, ServiceStep
from src.consular.domain.models.user import User, UserRole
from src.consular.domain.models.user_document import DocumentType
from src.consular.security import get_current_user, require_roles
from src.consular.services.organizations.service import organization_service
from src.consular.tenancy import get_current_organization, organization_dependency

router = APIRouter(
    prefix="/services",
    tags=["services"],
    dependencies=[Depends(organization_dependency)],
)


class ServiceCreateRequest(BaseModel):
    organization_id: UUID
    name: str = Field(min_length=1)
    category: ServiceCategory
    description: Optional[str] = None
    steps: List[ServiceStep] = Field(default_factory=list)
    required_documents: List[DocumentType] = Field(default_factory=list)
    optional_documents: List[DocumentType] = Field(default_factory=list)
    requires_appointment: bool = False


class ServiceUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    steps: Optional[List[ServiceStep]] = None
    required_documents: Optional[List[DocumentType]] = None
    optional_documents: Optional[List[DocumentType]] = None
    requires_appointment: Optional[bool] = None
    is_active: Optional[bool] = None


@router.post("/", response_model=ConsularService, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreateRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> ConsularService:
    return organization_service.create_service(
        current_user,
        organization_id=payload.organization_id,
        name=payload.name,
        category=payload.category,
        description=payload.description,
        steps=payload.steps,
        required_documents=payload.required_documents,
        optional_documents=payload.optional_documents,
        requires_appointment=payload.requires_appointment,
    )


@router.patch("/{service_id}", response_model=ConsularService)
async def update_service(
    service_id: UUID,
    payload: ServiceUpdateRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> ConsularService:
    changes = {key: getattr(payload, key) for key in payload.model_fields_set}
    return organization_service.update_service(current_user, service_id, changes)


@router.get("/", response_model=List[ConsularService])
async def list_services(
    organization_id: Optional[UUID] = Query(None),
    category: Optional[ServiceCategory] = Query(None),
    current_user: User = Depends(get_current_user),
) -> List[ConsularService]:
    """Active services, scoped to the requested or current organization."""

    return organization_service.list_services(
        organization_id=organization_id or get_current_organization(),
        category=category,
    )


@router.get("/{service_id}", response_model=ConsularService)
async def get_service(service_id: UUID, current_user: User = Depends(get_current_user)) -> ConsularService:
    return organization_service.get_service(service_id)
