from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.consular.domain.models.consular_service import ServiceCategory


class RequestStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    ADDITIONAL_INFO_NEEDED = "ADDITIONAL_INFO_NEEDED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


# Requests only move forward. ADDITIONAL_INFO_NEEDED -> SUBMITTED is the one
# loop back, used when the citizen answers a reviewer's question.
ALLOWED_TRANSITIONS: Mapping[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({RequestStatus.SUBMITTED}),
    RequestStatus.SUBMITTED: frozenset(
        {
            RequestStatus.IN_REVIEW,
            RequestStatus.APPROVED,
            RequestStatus.REJECTED,
            RequestStatus.ADDITIONAL_INFO_NEEDED,
        }
    ),
    RequestStatus.IN_REVIEW: frozenset(
        {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.ADDITIONAL_INFO_NEEDED}
    ),
    RequestStatus.ADDITIONAL_INFO_NEEDED: frozenset({RequestStatus.SUBMITTED}),
    RequestStatus.APPROVED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.COMPLETED: frozenset(),
}

# Outcomes a reviewer may pick.
REVIEW_OUTCOMES = frozenset(
    {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.ADDITIONAL_INFO_NEEDED}
)

# Statuses in which a request no longer blocks a new one for the same profile.
TERMINAL_STATUSES = frozenset({RequestStatus.REJECTED, RequestStatus.COMPLETED})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class RequestPriority(str, Enum):
    STANDARD = "STANDARD"
    URGENT = "URGENT"


class RequestActionType(str, Enum):
    CREATED = "CREATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNMENT = "ASSIGNMENT"
    NOTE_ADDED = "NOTE_ADDED"


class RequestAction(BaseModel):
    type: RequestActionType
    user_id: UUID
    created_at: datetime
    data: Dict[str, Any] = Field(default_factory=dict)


class NoteType(str, Enum):
    INTERNAL = "INTERNAL"
    # Visible to the citizen; triggers a notification.
    FEEDBACK = "FEEDBACK"


class RequestNote(BaseModel):
    id: UUID
    author_id: UUID
    type: NoteType
    content: str
    created_at: datetime


class ServiceRequest(BaseModel):
    """A citizen's invocation of a ConsularService."""

    id: UUID
    submitted_by_id: UUID
    profile_id: Optional[UUID] = None
    service_id: UUID
    service_category: ServiceCategory
    organization_id: UUID
    appointment_id: Optional[UUID] = None
    document_ids: List[UUID] = Field(default_factory=list)
    form_data: Dict[str, Any] = Field(default_factory=dict)
    priority: RequestPriority = RequestPriority.STANDARD
    status: RequestStatus = RequestStatus.DRAFT
    assigned_to_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_action_at: Optional[datetime] = None
    last_action_by: Optional[UUID] = None
    actions: List[RequestAction] = Field(default_factory=list)
    notes: List[RequestNote] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_STATUSES
