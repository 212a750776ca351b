from datetime import datetime, timedelta, timezone

import pytest

from src.consular.domain.models.appointment import AppointmentStatus
from src.consular.domain.models.notification import NotificationType
from src.consular.domain.models.user import UserRole, UserStatus
from src.consular.errors import AuthorizationError, ConflictError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.services.appointments.service import appointment_service
from src.consular.services.notifications.service import notification_service
from src.consular.services.requests.service import request_service


def _slot(days=3, minutes=30):
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=days)
    return start, start + timedelta(minutes=minutes)


@pytest.fixture
def citizen(make_user):
    return make_user()


@pytest.fixture
def agent(make_user, organization):
    return make_user([UserRole.AGENT], organization_id=organization.id)


def test_book_pending_appointment_for_own_request(citizen, organization, make_service):
    request = request_service.create(citizen, service_id=make_service(organization).id)
    start, end = _slot()

    appointment = appointment_service.book(
        citizen, organization_id=organization.id, start_at=start, end_at=end, request_id=request.id
    )

    assert appointment.status == AppointmentStatus.PENDING
    assert repos.request_repository.get(request.id).appointment_id == appointment.id


def test_booking_with_an_agent_is_confirmed(citizen, agent, organization):
    start, end = _slot()
    appointment = appointment_service.book(
        citizen, organization_id=organization.id, start_at=start, end_at=end, agent_id=agent.id
    )
    assert appointment.status == AppointmentStatus.CONFIRMED


def test_naive_times_are_treated_as_utc(citizen, organization):
    start = datetime(2031, 6, 1, 9, 0)
    appointment = appointment_service.book(
        citizen, organization_id=organization.id, start_at=start, end_at=start + timedelta(hours=1)
    )
    assert appointment.start_at.tzinfo is not None


def test_booking_rejects_bad_slots_and_foreign_requests(citizen, make_user, organization, make_service, agent):
    start, end = _slot()
    with pytest.raises(ValidationError):
        appointment_service.book(citizen, organization_id=organization.id, start_at=end, end_at=start)

    other_request = request_service.create(make_user(), service_id=make_service(organization).id)
    with pytest.raises(AuthorizationError):
        appointment_service.book(
            citizen, organization_id=organization.id, start_at=start, end_at=end, request_id=other_request.id
        )

    outsider = make_user([UserRole.AGENT])
    with pytest.raises(ValidationError):
        appointment_service.book(
            citizen, organization_id=organization.id, start_at=start, end_at=end, agent_id=outsider.id
        )


def test_booking_needs_an_active_agent_of_the_organization(citizen, make_user, organization, agent):
    start, end = _slot()
    plain_member = make_user(organization_id=organization.id)
    with pytest.raises(ValidationError):
        appointment_service.book(
            citizen, organization_id=organization.id, start_at=start, end_at=end, agent_id=plain_member.id
        )

    agent.status = UserStatus.DELETED
    repos.user_repository.save(agent)
    with pytest.raises(ValidationError):
        appointment_service.book(
            citizen, organization_id=organization.id, start_at=start, end_at=end, agent_id=agent.id
        )
    assert list(repos.appointment_repository.list_by_filters(attendee_id=citizen.id)) == []


def test_confirm_rejects_a_non_agent(citizen, agent, organization):
    start, end = _slot()
    appointment = appointment_service.book(citizen, organization_id=organization.id, start_at=start, end_at=end)

    with pytest.raises(ValidationError):
        appointment_service.confirm(agent, appointment.id, agent_id=citizen.id)
    assert repos.appointment_repository.get(appointment.id).status == AppointmentStatus.PENDING


def test_confirm_notifies_attendee(citizen, agent, organization):
    start, end = _slot()
    appointment = appointment_service.book(citizen, organization_id=organization.id, start_at=start, end_at=end)

    confirmed = appointment_service.confirm(agent, appointment.id)

    assert confirmed.status == AppointmentStatus.CONFIRMED
    assert confirmed.agent_id == agent.id
    latest = notification_service.list_for_user(citizen.id)[0]
    assert latest.type == NotificationType.APPOINTMENT_CONFIRMED

    with pytest.raises(ConflictError):
        appointment_service.confirm(agent, appointment.id)


def test_citizen_cannot_confirm_or_complete(citizen, organization):
    start, end = _slot()
    appointment = appointment_service.book(citizen, organization_id=organization.id, start_at=start, end_at=end)
    with pytest.raises(AuthorizationError):
        appointment_service.confirm(citizen, appointment.id)
    with pytest.raises(AuthorizationError):
        appointment_service.complete(citizen, appointment.id)


def test_cancel_by_staff_notifies_attendee_but_self_cancel_does_not(citizen, agent, organization):
    first = appointment_service.book(citizen, organization_id=organization.id, start_at=_slot()[0], end_at=_slot()[1])
    second = appointment_service.book(
        citizen, organization_id=organization.id, start_at=_slot(4)[0], end_at=_slot(4)[1]
    )

    appointment_service.cancel(citizen, first.id)
    assert notification_service.unread_count(citizen.id) == 0

    appointment_service.cancel(agent, second.id)
    assert notification_service.list_for_user(citizen.id)[0].type == NotificationType.APPOINTMENT_CANCELLED

    with pytest.raises(ConflictError):
        appointment_service.cancel(citizen, first.id)


def test_complete_requires_confirmation(citizen, agent, organization):
    start, end = _slot()
    appointment = appointment_service.book(citizen, organization_id=organization.id, start_at=start, end_at=end)
    with pytest.raises(ConflictError):
        appointment_service.complete(agent, appointment.id)

    appointment_service.confirm(agent, appointment.id)
    assert appointment_service.complete(agent, appointment.id).status == AppointmentStatus.COMPLETED


def test_list_upcoming_by_role(citizen, agent, make_user, organization):
    manager = make_user([UserRole.MANAGER], organization_id=organization.id)
    mine = appointment_service.book(
        citizen, organization_id=organization.id, start_at=_slot()[0], end_at=_slot()[1], agent_id=agent.id
    )
    unassigned = appointment_service.book(
        citizen, organization_id=organization.id, start_at=_slot(5)[0], end_at=_slot(5)[1]
    )
    cancelled = appointment_service.book(
        citizen, organization_id=organization.id, start_at=_slot(6)[0], end_at=_slot(6)[1]
    )
    appointment_service.cancel(citizen, cancelled.id)

    assert {a.id for a in appointment_service.list_upcoming(citizen)} == {mine.id, unassigned.id}
    assert [a.id for a in appointment_service.list_upcoming(agent)] == [mine.id]
    assert {a.id for a in appointment_service.list_upcoming(manager)} == {mine.id, unassigned.id}


def test_strangers_cannot_view_appointments(citizen, make_user, make_organization, organization):
    start, end = _slot()
    appointment = appointment_service.book(citizen, organization_id=organization.id, start_at=start, end_at=end)
    foreign_agent = make_user([UserRole.AGENT], organization_id=make_organization("Ambassade").id)
    with pytest.raises(AuthorizationError):
        appointment_service.get(foreign_agent, appointment.id)
