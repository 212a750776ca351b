from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Security, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr

from src.consular.access import home_route_for
from src.consular.domain.models.user import User
from src.consular.security import bearer_scheme, get_current_user
from src.consular.services.users.identity import identity_provider
from src.consular.services.users.service import user_service

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    phone_number: Optional[str] = None


class SessionResponse(BaseModel):
    user: User
    token: str
    home_route: str


class MeResponse(BaseModel):
    user: User
    home_route: str


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest) -> SessionResponse:
    """Create a citizen account and open a session for it."""

    user = user_service.register_user(
        email=str(payload.email),
        name=payload.name,
        phone_number=payload.phone_number,
    )
    token = identity_provider.issue_session(user.id)
    return SessionResponse(user=user, token=token, home_route=home_route_for(user))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    current_user: User = Depends(get_current_user),
) -> None:
    if credentials is not None:
        identity_provider.revoke_session(credentials.credentials)


@router.get("/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=current_user, home_route=home_route_for(current_user))
