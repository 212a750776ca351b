from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr


class ProfileStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


# A citizen may only edit a profile that is not under review or validated.
EDITABLE_PROFILE_STATUSES = frozenset({ProfileStatus.DRAFT, ProfileStatus.REJECTED})


class ProfileCategory(str, Enum):
    ADULT = "ADULT"
    MINOR = "MINOR"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class Profile(BaseModel):
    """A citizen's consular-registration record.

    For a MINOR profile ``user_id`` is the account of the parent who created
    it; access goes through ParentalAuthority records instead.
    """

    id: UUID
    user_id: UUID
    category: ProfileCategory = ProfileCategory.ADULT
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
    status: ProfileStatus = ProfileStatus.DRAFT
    validated_at: Optional[datetime] = None
    validated_by: Optional[UUID] = None
    validation_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
