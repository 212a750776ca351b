from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentType(str, Enum):
    PASSPORT = "PASSPORT"
    IDENTITY_PHOTO = "IDENTITY_PHOTO"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    RESIDENCE_PERMIT = "RESIDENCE_PERMIT"
    PROOF_OF_ADDRESS = "PROOF_OF_ADDRESS"
    OTHER = "OTHER"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


class UserDocument(BaseModel):
    id: UUID
    user_id: UUID
    profile_id: Optional[UUID] = None
    request_id: Optional[UUID] = None
    type: DocumentType
    file_url: str
    file_type: str
    status: DocumentStatus = DocumentStatus.PENDING
    issued_at: Optional[date] = None
    expires_at: Optional[date] = None
    # Free-form metadata. Validation overwrites it with validatedBy /
    # validatedAt (ISO-8601) and, when given, validationNotes.
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
