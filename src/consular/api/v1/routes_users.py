from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.user import User, UserRole
from src.consular.security import require_roles
from src.consular.services.users.service import user_service

router = APIRouter(prefix="/users", tags=["users"])


class StaffCreateRequest(BaseModel):
    email: EmailStr
    roles: List[UserRole] = Field(min_length=1)
    organization_id: Optional[UUID] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    specializations: List[ServiceCategory] = Field(default_factory=list)


@router.post("/staff", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_staff_user(
    payload: StaffCreateRequest,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> User:
    return user_service.create_staff_user(
        current_user,
        email=str(payload.email),
        roles=payload.roles,
        organization_id=payload.organization_id,
        name=payload.name,
        phone_number=payload.phone_number,
        specializations=[category.value for category in payload.specializations],
    )


@router.get("/staff", response_model=List[User])
async def list_staff(
    role: Optional[UserRole] = Query(None),
    current_user: User = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> List[User]:
    return user_service.list_staff(current_user, role=role)


@router.delete("/{user_id}", response_model=User)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
) -> User:
    """Soft delete: the account is kept with status DELETED."""

    return user_service.soft_delete_user(current_user, user_id)
