from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr

from src.consular.domain.models.parental_authority import ParentalAuthority, ParentalRole
from src.consular.domain.models.profile import Gender, Profile
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import User
from src.consular.security import get_current_user
from src.consular.services.profiles.children import child_profile_service
from src.consular.services.profiles.service import profile_service
from src.consular.services.requests.service import request_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


class ProfileCreateRequest(BaseModel):
    first_name: str
    last_name: str
    birth_date: Optional[date] = None
    birth_place: Optional[str] = None
    birth_country: Optional[str] = None
    nationality: Optional[str] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birth_date: Optional[date] = None
    birth_place: Optional[str] = None
    birth_country: Optional[str] = None
    nationality: Optional[str] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None


@router.post("/", response_model=Profile, status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: ProfileCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Profile:
    return profile_service.create_profile(current_user, payload.model_dump())


@router.get("/me", response_model=Profile)
async def get_my_profile(current_user: User = Depends(get_current_user)) -> Profile:
    return profile_service.get_own_profile(current_user)


@router.patch("/me", response_model=Profile)
async def update_my_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Profile:
    """Only DRAFT and REJECTED profiles can be edited."""

    return profile_service.update_own_profile(current_user, payload.model_dump(exclude_unset=True))


class ChildProfileCreateRequest(ProfileCreateRequest):
    # Defaults to FATHER or MOTHER from the parent's own profile.
    role: Optional[ParentalRole] = None


class ChildSubmitRequest(BaseModel):
    service_id: UUID


class ParentalAuthorityGrantRequest(BaseModel):
    parent_user_id: UUID
    role: ParentalRole


# Declared before "/{profile_id}" so "children" is not parsed as an id.
@router.post("/children", response_model=Profile, status_code=status.HTTP_201_CREATED)
async def create_child_profile(
    payload: ChildProfileCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Profile:
    data = payload.model_dump(exclude={"role"})
    return child_profile_service.create_child_profile(current_user, data, role=payload.role)


@router.get("/children", response_model=List[Profile])
async def list_child_profiles(current_user: User = Depends(get_current_user)) -> List[Profile]:
    return child_profile_service.list_child_profiles(current_user)


@router.get("/children/{child_id}", response_model=Profile)
async def get_child_profile(child_id: UUID, current_user: User = Depends(get_current_user)) -> Profile:
    return child_profile_service.get_child_profile(current_user, child_id)


@router.patch("/children/{child_id}", response_model=Profile)
async def update_child_profile(
    child_id: UUID,
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Profile:
    return child_profile_service.update_child_profile(
        current_user, child_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/children/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_child_profile(child_id: UUID, current_user: User = Depends(get_current_user)) -> None:
    """Only DRAFT child profiles can be deleted."""

    child_profile_service.delete_child_profile(current_user, child_id)


@router.post(
    "/children/{child_id}/submit",
    response_model=ServiceRequest,
    status_code=status.HTTP_201_CREATED,
)
async def submit_child_profile(
    child_id: UUID,
    payload: ChildSubmitRequest,
    current_user: User = Depends(get_current_user),
) -> ServiceRequest:
    return child_profile_service.submit_for_validation(current_user, child_id, service_id=payload.service_id)


@router.get("/children/{child_id}/requests", response_model=List[ServiceRequest])
async def list_child_requests(
    child_id: UUID,
    current_user: User = Depends(get_current_user),
) -> List[ServiceRequest]:
    return request_service.list_for_profile(current_user, child_id)


@router.get("/children/{child_id}/parents", response_model=List[ParentalAuthority])
async def list_parents(
    child_id: UUID,
    current_user: User = Depends(get_current_user),
) -> List[ParentalAuthority]:
    return child_profile_service.list_parental_authorities(current_user, child_id)


@router.post(
    "/children/{child_id}/parents",
    response_model=ParentalAuthority,
    status_code=status.HTTP_201_CREATED,
)
async def grant_parental_authority(
    child_id: UUID,
    payload: ParentalAuthorityGrantRequest,
    current_user: User = Depends(get_current_user),
) -> ParentalAuthority:
    return child_profile_service.grant_parental_authority(
        current_user, child_id, parent_user_id=payload.parent_user_id, role=payload.role
    )


@router.delete("/children/{child_id}/parents/{authority_id}", response_model=ParentalAuthority)
async def revoke_parental_authority(
    child_id: UUID,
    authority_id: UUID,
    current_user: User = Depends(get_current_user),
) -> ParentalAuthority:
    return child_profile_service.revoke_parental_authority(current_user, child_id, authority_id)


@router.get("/{profile_id}", response_model=Profile)
async def get_profile(profile_id: UUID, current_user: User = Depends(get_current_user)) -> Profile:
    return profile_service.get_profile(current_user, profile_id)
