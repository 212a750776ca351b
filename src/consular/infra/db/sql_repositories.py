from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional, Type
from uuid import UUID

from sqlalchemy import func, or_, select

from src.consular.domain.models.appointment import Appointment, AppointmentStatus
from src.consular.domain.models.consular_service import ConsularService, ServiceCategory
from src.consular.domain.models.notification import Notification
from src.consular.domain.models.organization import Organization
from src.consular.domain.models.parental_authority import ParentalAuthority
from src.consular.domain.models.profile import Profile, ProfileCategory
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import User, UserRole, UserStatus
from src.consular.domain.models.user_document import DocumentStatus, UserDocument
from src.consular.infra.db.models import (
    AppointmentORM,
    ConsularServiceORM,
    DomainMapped,
    NotificationORM,
    OrganizationORM,
    ParentalAuthorityORM,
    ProfileORM,
    ServiceRequestORM,
    UserDocumentORM,
    UserORM,
)
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
from src.consular.infra.db.session import SessionFactory


class _SqlRepository:
    """Shared get/save/delete plumbing for SQLAlchemy-backed repositories.

    Each call opens its own session, which keeps repositories safe to share
    across requests; ``save`` is an upsert through ``Session.merge``.
    """

    orm_class: Type[DomainMapped]

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def _get(self, entity_id: UUID) -> Optional[Any]:
        with self._session_factory() as session:
            orm = session.get(self.orm_class, entity_id)
            return orm.to_domain() if orm is not None else None

    def _all(self, statement) -> List[Any]:
        with self._session_factory() as session:
            return [orm.to_domain() for orm in session.scalars(statement).all()]

    def _save(self, entity: Any) -> None:
        with self._session_factory() as session:
            session.merge(self.orm_class.from_domain(entity))
            session.commit()

    def _delete(self, entity_id: UUID) -> None:
        with self._session_factory() as session:
            orm = session.get(self.orm_class, entity_id)
            if orm is not None:
                session.delete(orm)
                session.commit()


class SqlUserRepository(_SqlRepository, UserRepository):
    orm_class = UserORM

    def get(self, user_id: UUID) -> Optional[User]:
        return self._get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        found = self._all(select(UserORM).where(func.lower(UserORM.email) == email.lower()))
        return found[0] if found else None

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        role: Optional[UserRole] = None,
        include_deleted: bool = False,
    ) -> Iterable[User]:
        statement = select(UserORM)
        if not include_deleted:
            statement = statement.where(UserORM.status != UserStatus.DELETED.value)
        if organization_id is not None:
            statement = statement.where(UserORM.organization_id == organization_id)
        users = self._all(statement)
        # Roles are stored as a JSON array; filter in Python to stay portable
        # across SQLite and PostgreSQL.
        if role is not None:
            users = [user for user in users if role in user.roles]
        return users

    def save(self, user: User) -> None:
        self._save(user)


class SqlProfileRepository(_SqlRepository, ProfileRepository):
    orm_class = ProfileORM

    def get(self, profile_id: UUID) -> Optional[Profile]:
        return self._get(profile_id)

    def get_by_user(self, user_id: UUID) -> Optional[Profile]:
        found = self._all(
            select(ProfileORM).where(
                ProfileORM.user_id == user_id,
                ProfileORM.category == ProfileCategory.ADULT.value,
            )
        )
        return found[0] if found else None

    def save(self, profile: Profile) -> None:
        self._save(profile)

    def delete(self, profile_id: UUID) -> None:
        self._delete(profile_id)


class SqlParentalAuthorityRepository(_SqlRepository, ParentalAuthorityRepository):
    orm_class = ParentalAuthorityORM

    def get(self, authority_id: UUID) -> Optional[ParentalAuthority]:
        return self._get(authority_id)

    def list_by_filters(
        self,
        *,
        parent_user_id: Optional[UUID] = None,
        child_profile_id: Optional[UUID] = None,
        active_only: bool = True,
    ) -> Iterable[ParentalAuthority]:
        statement = select(ParentalAuthorityORM)
        if parent_user_id is not None:
            statement = statement.where(ParentalAuthorityORM.parent_user_id == parent_user_id)
        if child_profile_id is not None:
            statement = statement.where(ParentalAuthorityORM.child_profile_id == child_profile_id)
        if active_only:
            statement = statement.where(ParentalAuthorityORM.is_active.is_(True))
        return self._all(statement.order_by(ParentalAuthorityORM.created_at))

    def save(self, authority: ParentalAuthority) -> None:
        self._save(authority)

    def delete(self, authority_id: UUID) -> None:
        self._delete(authority_id)


class SqlOrganizationRepository(_SqlRepository, OrganizationRepository):
    orm_class = OrganizationORM

    def get(self, organization_id: UUID) -> Optional[Organization]:
        return self._get(organization_id)

    def list_all(self) -> Iterable[Organization]:
        return self._all(select(OrganizationORM).order_by(OrganizationORM.name))

    def save(self, organization: Organization) -> None:
        self._save(organization)


class SqlConsularServiceRepository(_SqlRepository, ConsularServiceRepository):
    orm_class = ConsularServiceORM

    def get(self, service_id: UUID) -> Optional[ConsularService]:
        return self._get(service_id)

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        category: Optional[ServiceCategory] = None,
        active_only: bool = False,
    ) -> Iterable[ConsularService]:
        statement = select(ConsularServiceORM)
        if organization_id is not None:
            statement = statement.where(ConsularServiceORM.organization_id == organization_id)
        if category is not None:
            statement = statement.where(ConsularServiceORM.category == category.value)
        if active_only:
            statement = statement.where(ConsularServiceORM.is_active.is_(True))
        return self._all(statement)

    def save(self, service: ConsularService) -> None:
        self._save(service)


class SqlServiceRequestRepository(_SqlRepository, ServiceRequestRepository):
    orm_class = ServiceRequestORM

    def get(self, request_id: UUID) -> Optional[ServiceRequest]:
        return self._get(request_id)

    def list_by_filters(self, request_filter: RequestFilter) -> Iterable[ServiceRequest]:
        orm = ServiceRequestORM
        statement = select(orm)
        if request_filter.statuses:
            statement = statement.where(orm.status.in_([s.value for s in request_filter.statuses]))
        if request_filter.categories:
            statement = statement.where(orm.service_category.in_([c.value for c in request_filter.categories]))
        if request_filter.priorities:
            statement = statement.where(orm.priority.in_([p.value for p in request_filter.priorities]))
        if request_filter.organization_id is not None:
            statement = statement.where(orm.organization_id == request_filter.organization_id)
        if request_filter.submitted_by_id is not None:
            statement = statement.where(orm.submitted_by_id == request_filter.submitted_by_id)
        if request_filter.profile_id is not None:
            statement = statement.where(orm.profile_id == request_filter.profile_id)
        if request_filter.assigned_to_id is not None:
            statement = statement.where(orm.assigned_to_id == request_filter.assigned_to_id)
        if request_filter.agent_scope_id is not None:
            statement = statement.where(
                or_(orm.assigned_to_id == request_filter.agent_scope_id, orm.assigned_to_id.is_(None))
            )
        if request_filter.created_after is not None:
            statement = statement.where(orm.created_at >= request_filter.created_after)
        if request_filter.created_before is not None:
            statement = statement.where(orm.created_at <= request_filter.created_before)
        return self._all(statement)

    def save(self, request: ServiceRequest) -> None:
        self._save(request)

    def delete(self, request_id: UUID) -> None:
        self._delete(request_id)


class SqlUserDocumentRepository(_SqlRepository, UserDocumentRepository):
    orm_class = UserDocumentORM

    def get(self, document_id: UUID) -> Optional[UserDocument]:
        return self._get(document_id)

    def list_by_filters(
        self,
        *,
        user_id: Optional[UUID] = None,
        profile_id: Optional[UUID] = None,
        request_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
    ) -> Iterable[UserDocument]:
        statement = select(UserDocumentORM)
        if user_id is not None:
            statement = statement.where(UserDocumentORM.user_id == user_id)
        if profile_id is not None:
            statement = statement.where(UserDocumentORM.profile_id == profile_id)
        if request_id is not None:
            statement = statement.where(UserDocumentORM.request_id == request_id)
        if status is not None:
            statement = statement.where(UserDocumentORM.status == status.value)
        return self._all(statement)

    def save(self, document: UserDocument) -> None:
        self._save(document)

    def delete(self, document_id: UUID) -> None:
        self._delete(document_id)


class SqlNotificationRepository(_SqlRepository, NotificationRepository):
    orm_class = NotificationORM

    def get(self, notification_id: UUID) -> Optional[Notification]:
        return self._get(notification_id)

    def list_for_user(self, user_id: UUID, *, unread_only: bool = False) -> Iterable[Notification]:
        statement = select(NotificationORM).where(NotificationORM.user_id == user_id)
        if unread_only:
            statement = statement.where(NotificationORM.read_at.is_(None))
        return self._all(statement.order_by(NotificationORM.created_at.desc()))

    def save(self, notification: Notification) -> None:
        self._save(notification)


class SqlAppointmentRepository(_SqlRepository, AppointmentRepository):
    orm_class = AppointmentORM

    def get(self, appointment_id: UUID) -> Optional[Appointment]:
        return self._get(appointment_id)

    def list_by_filters(
        self,
        *,
        organization_id: Optional[UUID] = None,
        attendee_id: Optional[UUID] = None,
        agent_id: Optional[UUID] = None,
        status: Optional[AppointmentStatus] = None,
        start_after: Optional[datetime] = None,
    ) -> Iterable[Appointment]:
        statement = select(AppointmentORM)
        if organization_id is not None:
            statement = statement.where(AppointmentORM.organization_id == organization_id)
        if attendee_id is not None:
            statement = statement.where(AppointmentORM.attendee_id == attendee_id)
        if agent_id is not None:
            statement = statement.where(AppointmentORM.agent_id == agent_id)
        if status is not None:
            statement = statement.where(AppointmentORM.status == status.value)
        if start_after is not None:
            statement = statement.where(AppointmentORM.start_at >= start_after)
        return self._all(statement.order_by(AppointmentORM.start_at))

    def save(self, appointment: Appointment) -> None:
        self._save(appointment)
