from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.consular.domain.models.organization import Organization, OrganizationType
from src.consular.domain.models.user import User, UserRole
from src.consular.security import get_current_user, require_roles
from src.consular.services.organizations.service import organization_service

router = APIRouter(prefix="/organizations", tags=["organizations"])


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    type: OrganizationType = OrganizationType.CONSULATE
    country_codes: List[str] = Field(default_factory=list)


@router.post("/", response_model=Organization, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreateRequest,
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN)),
) -> Organization:
    return organization_service.create_organization(
        current_user,
        name=payload.name,
        type=payload.type,
        country_codes=payload.country_codes,
    )


@router.get("/", response_model=List[Organization])
async def list_organizations(
    active_only: bool = Query(True),
    current_user: User = Depends(get_current_user),
) -> List[Organization]:
    return organization_service.list_organizations(active_only=active_only)


@router.get("/{organization_id}", response_model=Organization)
async def get_organization(organization_id: UUID, current_user: User = Depends(get_current_user)) -> Organization:
    return organization_service.get_organization(organization_id)
