from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional
from uuid import UUID

from src.consular.domain.models.appointment import Appointment, AppointmentStatus
from src.consular.domain.models.consular_service import ConsularService, ServiceCategory
from src.consular.domain.models.notification import Notification
from src.consular.domain.models.organization import Organization
from src.consular.domain.models.parental_authority import ParentalAuthority
from src.consular.domain.models.profile import Profile, ProfileCategory
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import User, UserRole, UserStatus
from src.consular.domain.models.user_document import DocumentStatus, UserDocument
from src.consular.infra.db.repositories import (
    AppointmentRepository,
    ConsularServiceRepository,
    NotificationRepository,
    OrganizationRepository,
    ParentalAuthorityRepository,
    ProfileRepository,
    RequestFilter,
    ServiceRequestRepository,
    UserDocumentRepository,
    UserRepository,
)


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: Dict[UUID, User] = {}

    def get(self, user_id: UUID) -> Optional[User]:
        return self._users.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        wanted = email.lower()
        for user in self._users.values():
            if user.email.lower() == wanted:
                return user
        return None

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        role: Optional[UserRole] = None,
        include_deleted: bool = False,
    ) -> Iterable[User]:
        for user in self._users.values():
            if not include_deleted and user.status == UserStatus.DELETED:
                continue
            if organization_id is not None and user.organization_id != organization_id:
                continue
            if role is not None and role not in user.roles:
                continue
            yield user

    def save(self, user: User) -> None:
        self._users[user.id] = user


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self) -> None:
        self._profiles: Dict[UUID, Profile] = {}

    def get(self, profile_id: UUID) -> Optional[Profile]:
        return self._profiles.get(profile_id)

    def get_by_user(self, user_id: UUID) -> Optional[Profile]:
        for profile in self._profiles.values():
            if profile.user_id == user_id and profile.category == ProfileCategory.ADULT:
                return profile
        return None

    def save(self, profile: Profile) -> None:
        self._profiles[profile.id] = profile

    def delete(self, profile_id: UUID) -> None:
        self._profiles.pop(profile_id, None)


class InMemoryParentalAuthorityRepository(ParentalAuthorityRepository):
    def __init__(self) -> None:
        self._authorities: Dict[UUID, ParentalAuthority] = {}

    def get(self, authority_id: UUID) -> Optional[ParentalAuthority]:
        return self._authorities.get(authority_id)

    def list_by_filters(
        self,
        *,
        parent_user_id: Optional[UUID] = None,
        child_profile_id: Optional[UUID] = None,
        active_only: bool = True,
    ) -> Iterable[ParentalAuthority]:
        for authority in self._authorities.values():
            if parent_user_id is not None and authority.parent_user_id != parent_user_id:
                continue
            if child_profile_id is not None and authority.child_profile_id != child_profile_id:
                continue
            if active_only and not authority.is_active:
                continue
            yield authority

    def save(self, authority: ParentalAuthority) -> None:
        self._authorities[authority.id] = authority

    def delete(self, authority_id: UUID) -> None:
        self._authorities.pop(authority_id, None)


class InMemoryOrganizationRepository(OrganizationRepository):
    def __init__(self) -> None:
        self._organizations: Dict[UUID, Organization] = {}

    def get(self, organization_id: UUID) -> Optional[Organization]:
        return self._organizations.get(organization_id)

    def list_all(self) -> Iterable[Organization]:
        return list(self._organizations.values())

    def save(self, organization: Organization) -> None:
        self._organizations[organization.id] = organization


class InMemoryConsularServiceRepository(ConsularServiceRepository):
    def __init__(self) -> None:
        self._services: Dict[UUID, ConsularService] = {}

    def get(self, service_id: UUID) -> Optional[ConsularService]:
        return self._services.get(service_id)

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        category: Optional[ServiceCategory] = None,
        active_only: bool = False,
    ) -> Iterable[ConsularService]:
        for service in self._services.values():
            if organization_id is not None and service.organization_id != organization_id:
                continue
            if category is not None and service.category != category:
                continue
            if active_only and not service.is_active:
                continue
            yield service

    def save(self, service: ConsularService) -> None:
        self._services[service.id] = service


class InMemoryServiceRequestRepository(ServiceRequestRepository):
    def __init__(self) -> None:
        self._requests: Dict[UUID, ServiceRequest] = {}

    def get(self, request_id: UUID) -> Optional[ServiceRequest]:
        return self._requests.get(request_id)

    def list_by_filters(self, request_filter: RequestFilter) -> Iterable[ServiceRequest]:
        for request in self._requests.values():
            if request_filter.matches(request):
                yield request

    def save(self, request: ServiceRequest) -> None:
        self._requests[request.id] = request

    def delete(self, request_id: UUID) -> None:
        self._requests.pop(request_id, None)


class InMemoryUserDocumentRepository(UserDocumentRepository):
    def __init__(self) -> None:
        self._documents: Dict[UUID, UserDocument] = {}

    def get(self, document_id: UUID) -> Optional[UserDocument]:
        return self._documents.get(document_id)

    def list_by_filters(
        self,
        *,
        user_id: Optional[UUID] = None,
        profile_id: Optional[UUID] = None,
        request_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
    ) -> Iterable[UserDocument]:
        for document in self._documents.values():
            if user_id is not None and document.user_id != user_id:
                continue
            if profile_id is not None and document.profile_id != profile_id:
                continue
            if request_id is not None and document.request_id != request_id:
                continue
            if status is not None and document.status != status:
                continue
            yield document

    def save(self, document: UserDocument) -> None:
        self._documents[document.id] = document

    def delete(self, document_id: UUID) -> None:
        self._documents.pop(document_id, None)


class InMemoryNotificationRepository(NotificationRepository):
    def __init__(self) -> None:
        self._notifications: Dict[UUID, Notification] = {}

    def get(self, notification_id: UUID) -> Optional[Notification]:
        return self._notifications.get(notification_id)

    def list_for_user(self, user_id: UUID, *, unread_only: bool = False) -> Iterable[Notification]:
        items = [
            n
            for n in self._notifications.values()
            if n.user_id == user_id and not (unread_only and n.is_read)
        ]
        # Newest first; ties keep the most recently stored notification first.
        return sorted(reversed(items), key=lambda n: n.created_at, reverse=True)

    def save(self, notification: Notification) -> None:
        self._notifications[notification.id] = notification


class InMemoryAppointmentRepository(AppointmentRepository):
    def __init__(self) -> None:
        self._appointments: Dict[UUID, Appointment] = {}

    def get(self, appointment_id: UUID) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        attendee_id: Optional[UUID] = None,
        agent_id: Optional[UUID] = None,
        status: Optional[AppointmentStatus] = None,
        start_after: Optional[datetime] = None,
    ) -> Iterable[Appointment]:
        items = []
        for appointment in self._appointments.values():
            if organization_id is not None and appointment.organization_id != organization_id:
                continue
            if attendee_id is not None and appointment.attendee_id != attendee_id:
                continue
            if agent_id is not None and appointment.agent_id != agent_id:
                continue
            if status is not None and appointment.status != status:
                continue
            if start_after is not None and appointment.start_at < start_after:
                continue
            items.append(appointment)
        return sorted(items, key=lambda a: a.start_at)

    def save(self, appointment: Appointment) -> None:
        self._appointments[appointment.id] = appointment


user_repository: UserRepository = InMemoryUserRepository()
profile_repository: ProfileRepository = InMemoryProfileRepository()
organization_repository: OrganizationRepository = InMemoryOrganizationRepository()
consular_service_repository: ConsularServiceRepository = InMemoryConsularServiceRepository()
request_repository: ServiceRequestRepository = InMemoryServiceRequestRepository()
document_repository: UserDocumentRepository = InMemoryUserDocumentRepository()
notification_repository: NotificationRepository = InMemoryNotificationRepository()
appointment_repository: AppointmentRepository = InMemoryAppointmentRepository()
parental_authority_repository: ParentalAuthorityRepository = InMemoryParentalAuthorityRepository()


def reset_inmemory_repositories() -> None:
    """Replace every repository singleton with an empty in-memory one.

    Used by the test-suite to isolate tests from each other.
    """

    global user_repository, profile_repository, organization_repository, consular_service_repository
    global request_repository, document_repository, notification_repository, appointment_repository
    global parental_authority_repository

    user_repository = InMemoryUserRepository()
    profile_repository = InMemoryProfileRepository()
    organization_repository = InMemoryOrganizationRepository()
    consular_service_repository = InMemoryConsularServiceRepository()
    request_repository = InMemoryServiceRequestRepository()
    document_repository = InMemoryUserDocumentRepository()
    notification_repository = InMemoryNotificationRepository()
    appointment_repository = InMemoryAppointmentRepository()
    parental_authority_repository = InMemoryParentalAuthorityRepository()
