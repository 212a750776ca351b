from datetime import date

import pytest

from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.notification import NotificationType
from src.consular.domain.models.parental_authority import ParentalRole
from src.consular.domain.models.profile import Gender, ProfileCategory, ProfileStatus
from src.consular.domain.models.service_request import RequestStatus
from src.consular.domain.models.user import UserRole
from src.consular.domain.models.user_document import DocumentType
from src.consular.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.services.documents.service import document_service
from src.consular.services.notifications.service import notification_service
from src.consular.services.profiles.children import child_profile_service
from src.consular.services.profiles.service import profile_service
from src.consular.services.requests.service import request_service

API = "/api/v1"

CHILD = {
    "first_name": "Léa",
    "last_name": "Nguema",
    "birth_date": date(2018, 4, 12),
    "birth_place": "Libreville",
    "nationality": "GA",
}


@pytest.fixture
def parent(make_user, make_profile):
    user = make_user()
    make_profile(user)
    return user


@pytest.fixture
def co_parent(make_user, make_profile):
    user = make_user()
    make_profile(user, first_name="Paul")
    return user


@pytest.fixture
def registration_service(make_service, organization):
    return make_service(organization, category=ServiceCategory.REGISTRATION, name="Consular registration")


def _birth_certificate(user, child):
    return document_service.upload(
        user,
        content=b"%PDF-1.4 acte de naissance",
        content_type="application/pdf",
        type=DocumentType.BIRTH_CERTIFICATE,
        profile_id=child.id,
    )


def test_create_child_profile_grants_authority_to_creator(parent):
    child = child_profile_service.create_child_profile(parent, CHILD)

    assert child.category == ProfileCategory.MINOR
    assert child.status == ProfileStatus.DRAFT
    authorities = child_profile_service.list_parental_authorities(parent, child.id)
    assert [(a.parent_user_id, a.role) for a in authorities] == [(parent.id, ParentalRole.MOTHER)]
    # The parent's own profile is still the one returned for their account.
    assert profile_service.get_own_profile(parent).category == ProfileCategory.ADULT


def test_default_role_follows_parent_gender(parent):
    profile_service.update_own_profile(parent, {"gender": Gender.MALE})
    child = child_profile_service.create_child_profile(parent, CHILD)

    authority = child_profile_service.list_parental_authorities(parent, child.id)[0]
    assert authority.role == ParentalRole.FATHER


def test_create_child_profile_needs_parent_profile(make_user):
    with pytest.raises(NotFoundError):
        child_profile_service.create_child_profile(make_user(), CHILD)


def test_list_and_access_rules(parent, make_user, organization):
    first = child_profile_service.create_child_profile(parent, CHILD)
    second = child_profile_service.create_child_profile(parent, {**CHILD, "first_name": "Noé"})

    assert {p.id for p in child_profile_service.list_child_profiles(parent)} == {first.id, second.id}

    stranger = make_user()
    assert child_profile_service.list_child_profiles(stranger) == []
    with pytest.raises(AuthorizationError):
        child_profile_service.get_child_profile(stranger, first.id)
    with pytest.raises(AuthorizationError):
        child_profile_service.update_child_profile(stranger, first.id, {"first_name": "X"})
    with pytest.raises(AuthorizationError):
        profile_service.get_profile(stranger, first.id)

    agent = make_user([UserRole.AGENT], organization_id=organization.id)
    assert child_profile_service.get_child_profile(agent, first.id).id == first.id


def test_adult_profile_is_not_a_child_profile(parent):
    with pytest.raises(NotFoundError):
        child_profile_service.get_child_profile(parent, parent.profile_id)


def test_update_only_while_editable(parent, registration_service):
    child = child_profile_service.create_child_profile(parent, {"first_name": "Léa", "last_name": "Nguema"})
    updated = child_profile_service.update_child_profile(
        parent, child.id, {k: v for k, v in CHILD.items() if k not in ("first_name", "last_name")}
    )
    assert updated.birth_place == "Libreville"

    _birth_certificate(parent, child)
    child_profile_service.submit_for_validation(parent, child.id, service_id=registration_service.id)

    with pytest.raises(ConflictError):
        child_profile_service.update_child_profile(parent, child.id, {"birth_place": "Paris"})


def test_submit_requires_complete_profile_and_birth_certificate(parent, registration_service):
    incomplete = child_profile_service.create_child_profile(parent, {"first_name": "Léa", "last_name": "Nguema"})
    with pytest.raises(ValidationError) as excinfo:
        child_profile_service.submit_for_validation(parent, incomplete.id, service_id=registration_service.id)
    assert "birth_date" in excinfo.value.message

    child = child_profile_service.create_child_profile(parent, CHILD)
    with pytest.raises(ValidationError):
        child_profile_service.submit_for_validation(parent, child.id, service_id=registration_service.id)
    assert request_service.list_for_profile(parent, child.id) == []


def test_submit_files_registration_for_the_child(parent, registration_service):
    child = child_profile_service.create_child_profile(parent, CHILD)
    _birth_certificate(parent, child)

    request = child_profile_service.submit_for_validation(parent, child.id, service_id=registration_service.id)

    assert request.status == RequestStatus.SUBMITTED
    assert request.profile_id == child.id
    assert request.submitted_by_id == parent.id
    assert repos.profile_repository.get(child.id).status == ProfileStatus.SUBMITTED

    with pytest.raises(ConflictError):
        child_profile_service.submit_for_validation(parent, child.id, service_id=registration_service.id)


def test_submit_rejects_non_registration_service(parent, make_service, organization):
    child = child_profile_service.create_child_profile(parent, CHILD)
    _birth_certificate(parent, child)
    with pytest.raises(ValidationError):
        child_profile_service.submit_for_validation(parent, child.id, service_id=make_service(organization).id)


def test_co_parent_follows_requests_for_the_child(parent, co_parent, make_service, organization):
    child = child_profile_service.create_child_profile(parent, CHILD)
    child_profile_service.grant_parental_authority(
        parent, child.id, parent_user_id=co_parent.id, role=ParentalRole.FATHER
    )
    passport = make_service(organization)

    request = request_service.create(parent, service_id=passport.id, profile_id=child.id)
    request_service.submit(parent, request.id)

    assert request_service.get_request_for(co_parent, request.id).id == request.id
    assert [r.id for r in request_service.list_for_profile(co_parent, child.id)] == [request.id]
    latest = notification_service.list_for_user(co_parent.id)[0]
    assert latest.type == NotificationType.REQUEST_SUBMITTED
    assert latest.metadata["request_id"] == str(request.id)


def test_requests_for_a_child_need_parental_authority(parent, make_user, make_profile, make_service, organization):
    child = child_profile_service.create_child_profile(parent, CHILD)
    stranger = make_user()
    make_profile(stranger)

    with pytest.raises(AuthorizationError):
        request_service.create(stranger, service_id=make_service(organization).id, profile_id=child.id)
    with pytest.raises(AuthorizationError):
        request_service.list_for_profile(stranger, child.id)
    with pytest.raises(AuthorizationError):
        _birth_certificate(stranger, child)


def test_grant_and_revoke_parental_authority(parent, co_parent):
    child = child_profile_service.create_child_profile(parent, CHILD)
    granted = child_profile_service.grant_parental_authority(
        parent, child.id, parent_user_id=co_parent.id, role=ParentalRole.FATHER
    )
    with pytest.raises(ConflictError):
        child_profile_service.grant_parental_authority(
            parent, child.id, parent_user_id=co_parent.id, role=ParentalRole.LEGAL_GUARDIAN
        )

    child_profile_service.revoke_parental_authority(parent, child.id, granted.id)

    assert [a.parent_user_id for a in child_profile_service.list_parental_authorities(parent, child.id)] == [
        parent.id
    ]
    with pytest.raises(AuthorizationError):
        child_profile_service.get_child_profile(co_parent, child.id)

    reinstated = child_profile_service.grant_parental_authority(
        parent, child.id, parent_user_id=co_parent.id, role=ParentalRole.LEGAL_GUARDIAN
    )
    assert reinstated.id == granted.id
    assert reinstated.is_active


def test_last_parent_cannot_be_revoked(parent):
    child = child_profile_service.create_child_profile(parent, CHILD)
    only = child_profile_service.list_parental_authorities(parent, child.id)[0]

    with pytest.raises(ConflictError):
        child_profile_service.revoke_parental_authority(parent, child.id, only.id)


def test_delete_only_draft_child_profiles(parent, registration_service):
    draft = child_profile_service.create_child_profile(parent, CHILD)
    child_profile_service.delete_child_profile(parent, draft.id)

    assert repos.profile_repository.get(draft.id) is None
    assert list(repos.parental_authority_repository.list_by_filters(child_profile_id=draft.id)) == []

    submitted = child_profile_service.create_child_profile(parent, CHILD)
    _birth_certificate(parent, submitted)
    child_profile_service.submit_for_validation(parent, submitted.id, service_id=registration_service.id)
    with pytest.raises(ConflictError):
        child_profile_service.delete_child_profile(parent, submitted.id)


async def test_child_profile_endpoints(client, parent, co_parent, auth_headers):
    headers = auth_headers(parent)

    created = await client.post(
        f"{API}/profiles/children",
        headers=headers,
        json={"first_name": "Léa", "last_name": "Nguema", "role": "LEGAL_GUARDIAN"},
    )
    assert created.status_code == 201
    child_id = created.json()["id"]
    assert created.json()["category"] == "MINOR"

    listed = await client.get(f"{API}/profiles/children", headers=headers)
    assert [p["id"] for p in listed.json()] == [child_id]

    forbidden = await client.get(f"{API}/profiles/children/{child_id}", headers=auth_headers(co_parent))
    assert forbidden.status_code == 403

    granted = await client.post(
        f"{API}/profiles/children/{child_id}/parents",
        headers=headers,
        json={"parent_user_id": str(co_parent.id), "role": "FATHER"},
    )
    assert granted.status_code == 201
    visible = await client.get(f"{API}/profiles/children/{child_id}", headers=auth_headers(co_parent))
    assert visible.status_code == 200

    parents = await client.get(f"{API}/profiles/children/{child_id}/parents", headers=headers)
    assert {p["role"] for p in parents.json()} == {"LEGAL_GUARDIAN", "FATHER"}

    deleted = await client.delete(f"{API}/profiles/children/{child_id}", headers=headers)
    assert deleted.status_code == 204
    missing = await client.get(f"{API}/profiles/children/{child_id}", headers=headers)
    assert missing.status_code == 404
