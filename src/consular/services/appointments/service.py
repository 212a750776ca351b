from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from src.consular.domain.models.appointment import Appointment, AppointmentStatus
from src.consular.domain.models.notification import NotificationChannel, NotificationType
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.services.audit.service import audit_service
from src.consular.services.notifications.service import notification_service

_OPEN_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_staff_of(user: User, organization_id: UUID) -> bool:
    if user.has_role(UserRole.SUPER_ADMIN):
        return True
    return any(user.has_role(role) for role in REVIEWER_ROLES) and user.organization_id == organization_id


def _check_agent(agent_id: UUID, organization_id: UUID) -> None:
    agent = repos.user_repository.get(agent_id)
    if agent is None or not agent.is_active:
        raise ValidationError("Agent not found")
    if not agent.has_role(UserRole.AGENT) and not agent.has_role(UserRole.MANAGER):
        raise ValidationError("Appointments can only be held by agents")
    if agent.organization_id != organization_id:
        raise ValidationError("Agent does not belong to this organization")


class AppointmentService:
    def book(
        self,
        actor: User,
        *,
        organization_id: UUID,
        start_at: datetime,
        end_at: datetime,
        request_id: Optional[UUID] = None,
        agent_id: Optional[UUID] = None,
        instructions: Optional[str] = None,
    ) -> Appointment:
        start_at, end_at = _as_utc(start_at), _as_utc(end_at)
        if end_at <= start_at:
            raise ValidationError("Appointment must end after it starts")
        if repos.organization_repository.get(organization_id) is None:
            raise NotFoundError("Organization", organization_id)

        if request_id is not None:
            request = repos.request_repository.get(request_id)
            if request is None:
                raise NotFoundError("Service request", request_id)
            if request.submitted_by_id != actor.id:
                raise AuthorizationError("Appointments can only be booked for your own requests")

        if agent_id is not None:
            _check_agent(agent_id, organization_id)

        now = datetime.now(timezone.utc)
        appointment = Appointment(
            id=uuid4(),
            organization_id=organization_id,
            attendee_id=actor.id,
            agent_id=agent_id,
            request_id=request_id,
            start_at=start_at,
            end_at=end_at,
            status=AppointmentStatus.CONFIRMED if agent_id else AppointmentStatus.PENDING,
            instructions=instructions,
            created_at=now,
            updated_at=now,
        )
        repos.appointment_repository.save(appointment)

        if request_id is not None:
            request.appointment_id = appointment.id
            repos.request_repository.save(request)

        audit_service.log_event(
            action="book_appointment",
            resource_type="appointment",
            resource_id=str(appointment.id),
            subject=str(actor.id),
        )
        return appointment

    def get(self, actor: User, appointment_id: UUID) -> Appointment:
        appointment = repos.appointment_repository.get(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        if appointment.attendee_id != actor.id and not _is_staff_of(actor, appointment.organization_id):
            raise AuthorizationError("Not authorized to view this appointment")
        return appointment

    def confirm(self, actor: User, appointment_id: UUID, *, agent_id: Optional[UUID] = None) -> Appointment:
        appointment = self.get(actor, appointment_id)
        if not _is_staff_of(actor, appointment.organization_id):
            raise AuthorizationError("Only staff can confirm appointments")
        if appointment.status != AppointmentStatus.PENDING:
            raise ConflictError(f"Appointment cannot be confirmed while {appointment.status.value}")

        if agent_id is not None:
            _check_agent(agent_id, appointment.organization_id)
        appointment.agent_id = agent_id or appointment.agent_id or actor.id
        self._set_status(appointment, AppointmentStatus.CONFIRMED)
        notification_service.notify(
            user_id=appointment.attendee_id,
            type=NotificationType.APPOINTMENT_CONFIRMED,
            title="Appointment confirmed",
            message=f"Your appointment on {appointment.start_at:%Y-%m-%d %H:%M} is confirmed.",
            channels=(NotificationChannel.APP, NotificationChannel.EMAIL, NotificationChannel.SMS),
            metadata={"appointment_id": str(appointment.id)},
        )
        return appointment

    def cancel(self, actor: User, appointment_id: UUID) -> Appointment:
        appointment = self.get(actor, appointment_id)
        if appointment.status not in _OPEN_STATUSES:
            raise ConflictError(f"Appointment cannot be cancelled while {appointment.status.value}")

        self._set_status(appointment, AppointmentStatus.CANCELLED)
        if actor.id != appointment.attendee_id:
            notification_service.notify(
                user_id=appointment.attendee_id,
                type=NotificationType.APPOINTMENT_CANCELLED,
                title="Appointment cancelled",
                message=f"Your appointment on {appointment.start_at:%Y-%m-%d %H:%M} has been cancelled.",
                channels=(NotificationChannel.APP, NotificationChannel.EMAIL, NotificationChannel.SMS),
                metadata={"appointment_id": str(appointment.id)},
            )
        audit_service.log_event(
            action="cancel_appointment",
            resource_type="appointment",
            resource_id=str(appointment.id),
            subject=str(actor.id),
        )
        return appointment

    def complete(self, actor: User, appointment_id: UUID) -> Appointment:
        appointment = self.get(actor, appointment_id)
        if not _is_staff_of(actor, appointment.organization_id):
            raise AuthorizationError("Only staff can complete appointments")
        if appointment.status != AppointmentStatus.CONFIRMED:
            raise ConflictError(f"Appointment cannot be completed while {appointment.status.value}")
        self._set_status(appointment, AppointmentStatus.COMPLETED)
        return appointment

    def list_upcoming(self, actor: User) -> List[Appointment]:
        now = datetime.now(timezone.utc)
        if actor.has_role(UserRole.USER) and not any(actor.has_role(role) for role in REVIEWER_ROLES):
            appointments = repos.appointment_repository.list_by_filters(attendee_id=actor.id, start_after=now)
        elif actor.has_role(UserRole.AGENT):
            appointments = repos.appointment_repository.list_by_filters(agent_id=actor.id, start_after=now)
        else:
            organization_id = None if actor.has_role(UserRole.SUPER_ADMIN) else actor.organization_id
            appointments = repos.appointment_repository.list_by_filters(
                organization_id=organization_id, start_after=now
            )
        return [a for a in appointments if a.status in _OPEN_STATUSES]

    @staticmethod
    def _set_status(appointment: Appointment, status: AppointmentStatus) -> None:
        appointment.status = status
        appointment.updated_at = datetime.now(timezone.utc)
        repos.appointment_repository.save(appointment)


appointment_service = AppointmentService()
