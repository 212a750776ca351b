from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from src.consular.domain.models.appointment import Appointment
from src.consular.domain.models.user import REVIEWER_ROLES, User
from src.consular.security import get_current_user, require_roles
from src.consular.services.appointments.service import appointment_service

router = APIRouter(prefix="/appointments", tags=["appointments"])


class AppointmentCreateRequest(BaseModel):
    organization_id: UUID
    start_at: datetime
    end_at: datetime
    request_id: Optional[UUID] = None
    agent_id: Optional[UUID] = None
    instructions: Optional[str] = None


class AppointmentConfirmRequest(BaseModel):
    agent_id: Optional[UUID] = None


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: AppointmentCreateRequest,
    current_user: User = Depends(get_current_user),
) -> Appointment:
    return appointment_service.book(
        current_user,
        organization_id=payload.organization_id,
        start_at=payload.start_at,
        end_at=payload.end_at,
        request_id=payload.request_id,
        agent_id=payload.agent_id,
        instructions=payload.instructions,
    )


@router.get("/upcoming", response_model=List[Appointment])
async def list_upcoming(current_user: User = Depends(get_current_user)) -> List[Appointment]:
    return appointment_service.list_upcoming(current_user)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: UUID, current_user: User = Depends(get_current_user)) -> Appointment:
    return appointment_service.get(current_user, appointment_id)


@router.post("/{appointment_id}/confirm", response_model=Appointment)
async def confirm_appointment(
    appointment_id: UUID,
    payload: Optional[AppointmentConfirmRequest] = None,
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> Appointment:
    agent_id = payload.agent_id if payload else None
    return appointment_service.confirm(current_user, appointment_id, agent_id=agent_id)


@router.post("/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(appointment_id: UUID, current_user: User = Depends(get_current_user)) -> Appointment:
    return appointment_service.cancel(current_user, appointment_id)


@router.post("/{appointment_id}/complete", response_model=Appointment)
async def complete_appointment(
    appointment_id: UUID,
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> Appointment:
    return appointment_service.complete(current_user, appointment_id)
