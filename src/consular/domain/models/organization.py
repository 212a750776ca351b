from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class OrganizationType(str, Enum):
    EMBASSY = "EMBASSY"
    CONSULATE = "CONSULATE"
    GENERAL_CONSULATE = "GENERAL_CONSULATE"


class OrganizationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Organization(BaseModel):
    """A tenant: one diplomatic post grouping countries, services and staff."""

    id: UUID
    name: str
    type: OrganizationType = OrganizationType.CONSULATE
    # ISO 3166-1 alpha-2 codes of the countries this post covers.
    country_codes: List[str] = Field(default_factory=list)
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    created_at: datetime
