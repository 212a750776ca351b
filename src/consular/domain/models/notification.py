from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_IN_REVIEW = "REQUEST_IN_REVIEW"
    REQUEST_ADDITIONAL_INFO_NEEDED = "REQUEST_ADDITIONAL_INFO_NEEDED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    REQUEST_COMPLETED = "REQUEST_COMPLETED"
    REQUEST_ASSIGNED = "REQUEST_ASSIGNED"
    DOCUMENT_VALIDATED = "DOCUMENT_VALIDATED"
    DOCUMENT_REJECTED = "DOCUMENT_REJECTED"
    PROFILE_VALIDATED = "PROFILE_VALIDATED"
    PROFILE_REJECTED = "PROFILE_REJECTED"
    APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    FEEDBACK = "FEEDBACK"


class NotificationChannel(str, Enum):
    APP = "app"
    EMAIL = "email"
    SMS = "sms"


class Notification(BaseModel):
    """In-app notification shown to a single user."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    channels: List[NotificationChannel] = Field(default_factory=lambda: [NotificationChannel.APP])
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    read_at: Optional[datetime] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class ChannelResult(BaseModel):
    channel: NotificationChannel
    success: bool
    error: Optional[str] = None


class NotificationResponse(BaseModel):
    """Outcome of one dispatch across all requested channels."""

    notification_id: Optional[UUID] = None
    results: List[ChannelResult] = Field(default_factory=list)

    @property
    def successful(self) -> bool:
        return any(result.success for result in self.results)
