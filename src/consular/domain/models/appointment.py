from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Appointment(BaseModel):
    id: UUID
    organization_id: UUID
    attendee_id: UUID
    agent_id: Optional[UUID] = None
    request_id: Optional[UUID] = None
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING
    instructions: Optional[str] = None
    created_at: datetime
    updated_at: datetime
