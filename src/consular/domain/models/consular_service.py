from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.consular.domain.models.user_document import DocumentType


class ServiceCategory(str, Enum):
    PASSPORT = "PASSPORT"
    CIVIL_STATUS = "CIVIL_STATUS"
    VISA = "VISA"
    REGISTRATION = "REGISTRATION"
    CONSULAR_CARD = "CONSULAR_CARD"
    OTHER = "OTHER"


class ServiceStep(BaseModel):
    title: str
    description: Optional[str] = None
    # Names of the form fields collected at this step.
    fields: List[str] = Field(default_factory=list)


class ConsularService(BaseModel):
    """Service template defined by an organization (e.g. "Passport renewal")."""

    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    steps: List[ServiceStep] = Field(default_factory=list)
    required_documents: List[DocumentType] = Field(default_factory=list)
    optional_documents: List[DocumentType] = Field(default_factory=list)
    requires_appointment: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
