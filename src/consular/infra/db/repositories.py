from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Set
from uuid import UUID

from src.consular.domain.models.appointment import Appointment, AppointmentStatus
from src.consular.domain.models.consular_service import ConsularService, ServiceCategory
from src.consular.domain.models.notification import Notification
from src.consular.domain.models.organization import Organization
from src.consular.domain.models.parental_authority import ParentalAuthority
from src.consular.domain.models.profile import Profile
from src.consular.domain.models.service_request import RequestPriority, RequestStatus, ServiceRequest
from src.consular.domain.models.user import User, UserRole
from src.consular.domain.models.user_document import DocumentStatus, UserDocument


@dataclass
class RequestFilter:
    """Filters understood by every ServiceRequestRepository.

    Empty sets mean "no filter". ``agent_scope_id`` restricts results to
    requests assigned to that agent or not assigned to anybody yet.
    """

    statuses: Set[RequestStatus] = field(default_factory=set)
    categories: Set[ServiceCategory] = field(default_factory=set)
    priorities: Set[RequestPriority] = field(default_factory=set)
    organization_id: Optional[UUID] = None
    submitted_by_id: Optional[UUID] = None
    profile_id: Optional[UUID] = None
    assigned_to_id: Optional[UUID] = None
    agent_scope_id: Optional[UUID] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None

    def matches(self, request: ServiceRequest) -> bool:
        if self.statuses and request.status not in self.statuses:
            return False
        if self.categories and request.service_category not in self.categories:
            return False
        if self.priorities and request.priority not in self.priorities:
            return False
        if self.organization_id is not None and request.organization_id != self.organization_id:
            return False
        if self.submitted_by_id is not None and request.submitted_by_id != self.submitted_by_id:
            return False
        if self.profile_id is not None and request.profile_id != self.profile_id:
            return False
        if self.assigned_to_id is not None and request.assigned_to_id != self.assigned_to_id:
            return False
        if self.agent_scope_id is not None and request.assigned_to_id not in (None, self.agent_scope_id):
            return False
        if self.created_after is not None and request.created_at < self.created_after:
            return False
        if self.created_before is not None and request.created_at > self.created_before:
            return False
        return True


class UserRepository(ABC):
    @abstractmethod
    def get(self, user_id: UUID) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        role: Optional[UserRole] = None,
        include_deleted: bool = False,
    ) -> Iterable[User]:
        raise NotImplementedError

    @abstractmethod
    def save(self, user: User) -> None:
        raise NotImplementedError


class ProfileRepository(ABC):
    @abstractmethod
    def get(self, profile_id: UUID) -> Optional[Profile]:
        raise NotImplementedError

    @abstractmethod
    def get_by_user(self, user_id: UUID) -> Optional[Profile]:
        """The ADULT profile owned by ``user_id``; child profiles are never returned."""
        raise NotImplementedError

    @abstractmethod
    def save(self, profile: Profile) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, profile_id: UUID) -> None:
        raise NotImplementedError


class ParentalAuthorityRepository(ABC):
    @abstractmethod
    def get(self, authority_id: UUID) -> Optional[ParentalAuthority]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        parent_user_id: Optional[UUID] = None,
        child_profile_id: Optional[UUID] = None,
        active_only: bool = True,
    ) -> Iterable[ParentalAuthority]:
        raise NotImplementedError

    @abstractmethod
    def save(self, authority: ParentalAuthority) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, authority_id: UUID) -> None:
        raise NotImplementedError


class OrganizationRepository(ABC):
    @abstractmethod
    def get(self, organization_id: UUID) -> Optional[Organization]:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> Iterable[Organization]:
        raise NotImplementedError

    @abstractmethod
    def save(self, organization: Organization) -> None:
        raise NotImplementedError


class ConsularServiceRepository(ABC):
    @abstractmethod
    def get(self, service_id: UUID) -> Optional[ConsularService]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        category: Optional[ServiceCategory] = None,
        active_only: bool = False,
    ) -> Iterable[ConsularService]:
        raise NotImplementedError

    @abstractmethod
    def save(self, service: ConsularService) -> None:
        raise NotImplementedError


class ServiceRequestRepository(ABC):
    @abstractmethod
    def get(self, request_id: UUID) -> Optional[ServiceRequest]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(self, request_filter: RequestFilter) -> Iterable[ServiceRequest]:
        raise NotImplementedError

    @abstractmethod
    def save(self, request: ServiceRequest) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, request_id: UUID) -> None:
        raise NotImplementedError


class UserDocumentRepository(ABC):
    @abstractmethod
    def get(self, document_id: UUID) -> Optional[UserDocument]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        user_id: Optional[UUID] = None,
        profile_id: Optional[UUID] = None,
        request_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
    ) -> Iterable[UserDocument]:
        raise NotImplementedError

    @abstractmethod
    def save(self, document: UserDocument) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, document_id: UUID) -> None:
        raise NotImplementedError


class NotificationRepository(ABC):
    @abstractmethod
    def get(self, notification_id: UUID) -> Optional[Notification]:
        raise NotImplementedError

    @abstractmethod
    def list_for_user(self, user_id: UUID, *, unread_only: bool = False) -> Iterable[Notification]:
        raise NotImplementedError

    @abstractmethod
    def save(self, notification: Notification) -> None:
        raise NotImplementedError


class AppointmentRepository(ABC):
    @abstractmethod
    def get(self, appointment_id: UUID) -> Optional[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        attendee_id: Optional[UUID] = None,
        agent_id: Optional[UUID] = None,
        status: Optional[AppointmentStatus] = None,
        start_after: Optional[datetime] = None,
    ) -> Iterable[Appointment]:
        raise NotImplementedError

    @abstractmethod
    def save(self, appointment: Appointment) -> None:
        raise NotImplementedError
