from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    USER = "USER"
    AGENT = "AGENT"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    INTEL_AGENT = "INTEL_AGENT"


# Roles that work in the back-office dashboards.
STAFF_ROLES = frozenset({UserRole.AGENT, UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN})
# Roles allowed to review requests and validate documents.
REVIEWER_ROLES = frozenset({UserRole.AGENT, UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN})


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DELETED = "DELETED"


class User(BaseModel):
    id: UUID
    email: EmailStr
    name: Optional[str] = None
    phone_number: Optional[str] = None
    roles: List[UserRole] = Field(default_factory=lambda: [UserRole.USER])
    # Organization a staff member works for. Citizens normally have none.
    organization_id: Optional[UUID] = None
    profile_id: Optional[UUID] = None
    # Service categories an agent is allowed to process.
    specializations: List[str] = Field(default_factory=list)
    status: UserStatus = UserStatus.ACTIVE
    created_at: datetime
    deleted_at: Optional[datetime] = None

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
