from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class ParentalRole(str, Enum):
    FATHER = "FATHER"
    MOTHER = "MOTHER"
    LEGAL_GUARDIAN = "LEGAL_GUARDIAN"


class ParentalAuthority(BaseModel):
    """Links a parent's account to a MINOR profile they may act for."""

    id: UUID
    child_profile_id: UUID
    parent_user_id: UUID
    role: ParentalRole
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
