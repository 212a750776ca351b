from datetime import date, datetime, timedelta, timezone

import pytest

from src.consular.domain.models.notification import NotificationType
from src.consular.domain.models.parental_authority import ParentalRole
from src.consular.domain.models.profile import ProfileCategory
from src.consular.domain.models.service_request import RequestActionType, RequestStatus
from src.consular.domain.models.user import UserRole
from src.consular.domain.models.user_document import DocumentType
from src.consular.infra.db import inmemory as repos
from src.consular.infra.db.bootstrap import init_sql_repositories
from src.consular.infra.db.repositories import RequestFilter
from src.consular.infra.db.sql_repositories import SqlServiceRequestRepository
from src.consular.services.appointments.service import appointment_service
from src.consular.services.documents.service import document_service
from src.consular.services.notifications.service import notification_service
from src.consular.services.profiles.children import child_profile_service
from src.consular.services.requests.service import RequestQuery, request_service


@pytest.fixture
def sql_repositories(tmp_path):
    assert init_sql_repositories(f"sqlite:///{tmp_path / 'consular.db'}", force=True)
    yield
    repos.reset_inmemory_repositories()


def test_init_without_url_keeps_in_memory_repositories(monkeypatch):
    monkeypatch.setattr("src.consular.infra.db.bootstrap.settings.database_url", None)
    assert init_sql_repositories(force=True) is False
    assert not isinstance(repos.request_repository, SqlServiceRequestRepository)


def test_request_workflow_round_trips_through_sql(
    sql_repositories, make_organization, make_user, make_profile, make_service
):
    assert isinstance(repos.request_repository, SqlServiceRequestRepository)
    organization = make_organization()
    citizen = make_user()
    make_profile(citizen)
    agent = make_user([UserRole.AGENT], organization_id=organization.id)
    manager = make_user([UserRole.MANAGER], organization_id=organization.id)
    service = make_service(organization)

    request = request_service.create(citizen, service_id=service.id, form_data={"reason": "lost", "copies": 2})
    request_service.submit(citizen, request.id)
    request_service.assign(manager, request.id, agent.id)

    stored = repos.request_repository.get(request.id)
    assert stored.status == RequestStatus.IN_REVIEW
    assert stored.assigned_to_id == agent.id
    assert stored.form_data == {"reason": "lost", "copies": 2}
    assert stored.submitted_at.tzinfo is not None
    assert [action.type for action in stored.actions] == [
        RequestActionType.CREATED,
        RequestActionType.STATUS_CHANGE,
        RequestActionType.ASSIGNMENT,
        RequestActionType.STATUS_CHANGE,
    ]

    page = request_service.list(agent, RequestQuery())
    assert [item.id for item in page.items] == [request.id]
    assert request_service.stats(manager).by_status == {"IN_REVIEW": 1}


def test_agent_scope_filter_in_sql(sql_repositories, make_organization, make_user, make_service):
    organization = make_organization()
    citizen = make_user()
    agent = make_user([UserRole.AGENT], organization_id=organization.id)
    other_agent = make_user([UserRole.AGENT], organization_id=organization.id)
    manager = make_user([UserRole.MANAGER], organization_id=organization.id)
    service = make_service(organization)

    mine = request_service.create(citizen, service_id=service.id)
    theirs = request_service.create(citizen, service_id=service.id)
    unassigned = request_service.create(citizen, service_id=service.id)
    for request in (mine, theirs, unassigned):
        request_service.submit(citizen, request.id)
    request_service.assign(manager, mine.id, agent.id)
    request_service.assign(manager, theirs.id, other_agent.id)

    visible = repos.request_repository.list_by_filters(
        RequestFilter(organization_id=organization.id, agent_scope_id=agent.id)
    )

    assert {request.id for request in visible} == {mine.id, unassigned.id}


def test_documents_and_notifications_in_sql(sql_repositories, make_user, make_profile):
    citizen = make_user()
    make_profile(citizen)

    document = document_service.upload(
        citizen,
        content=b"%PDF-1.4",
        content_type="application/pdf",
        type=DocumentType.PASSPORT,
        issued_at=date(2021, 3, 1),
        metadata={"pages": 32},
    )
    stored = repos.document_repository.get(document.id)
    assert stored.issued_at == date(2021, 3, 1)
    assert stored.metadata == {"pages": 32}
    assert stored.created_at.tzinfo is not None

    for _ in range(2):
        notification_service.notify(user_id=citizen.id, type=NotificationType.FEEDBACK, title="t", message="m")
    assert notification_service.unread_count(citizen.id) == 2
    assert notification_service.mark_all_as_read(citizen.id) == 2
    assert notification_service.unread_count(citizen.id) == 0


def test_upcoming_appointments_in_sql(sql_repositories, make_organization, make_user):
    organization = make_organization()
    citizen = make_user()
    start = datetime.now(timezone.utc) + timedelta(days=2)

    appointment = appointment_service.book(
        citizen, organization_id=organization.id, start_at=start, end_at=start + timedelta(minutes=30)
    )

    upcoming = appointment_service.list_upcoming(citizen)
    assert [a.id for a in upcoming] == [appointment.id]
    assert upcoming[0].start_at == start


def test_child_profiles_and_parental_authority_in_sql(sql_repositories, make_user, make_profile):
    parent = make_user()
    own = make_profile(parent)
    co_parent = make_user()

    child = child_profile_service.create_child_profile(parent, {"first_name": "Léa", "last_name": "Nguema"})
    granted = child_profile_service.grant_parental_authority(
        parent, child.id, parent_user_id=co_parent.id, role=ParentalRole.FATHER
    )

    assert repos.profile_repository.get_by_user(parent.id).id == own.id
    assert repos.profile_repository.get(child.id).category == ProfileCategory.MINOR
    assert [p.id for p in child_profile_service.list_child_profiles(co_parent)] == [child.id]

    child_profile_service.revoke_parental_authority(parent, child.id, granted.id)
    assert child_profile_service.list_child_profiles(co_parent) == []
    assert repos.parental_authority_repository.get(granted.id).is_active is False

    child_profile_service.delete_child_profile(parent, child.id)
    assert repos.profile_repository.get(child.id) is None
    leftovers = repos.parental_authority_repository.list_by_filters(child_profile_id=child.id, active_only=False)
    assert list(leftovers) == []
