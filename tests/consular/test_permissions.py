from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import User, UserRole
from src.consular.domain.models.user_document import DocumentType, UserDocument
from src.consular.errors import AuthorizationError
from src.consular.permissions import (
    can_process_request,
    can_view_document,
    can_view_request,
    ensure_can_manage_organization,
)

ORG_A = uuid4()
ORG_B = uuid4()


def _user(*roles, organization_id=None, specializations=()):
    return User(
        id=uuid4(),
        email="staff@example.com",
        roles=list(roles),
        organization_id=organization_id,
        specializations=list(specializations),
        created_at=datetime.now(timezone.utc),
    )


def _request(owner_id, *, organization_id=ORG_A, category=ServiceCategory.PASSPORT):
    now = datetime.now(timezone.utc)
    return ServiceRequest(
        id=uuid4(),
        submitted_by_id=owner_id,
        service_id=uuid4(),
        service_category=category,
        organization_id=organization_id,
        created_at=now,
        updated_at=now,
    )


def test_staff_process_only_their_organization():
    request = _request(uuid4())
    assert can_process_request(_user(UserRole.ADMIN, organization_id=ORG_A), request)
    assert can_process_request(_user(UserRole.MANAGER, organization_id=ORG_A), request)
    assert not can_process_request(_user(UserRole.ADMIN, organization_id=ORG_B), request)
    assert can_process_request(_user(UserRole.SUPER_ADMIN), request)


def test_agent_specializations_limit_categories():
    request = _request(uuid4(), category=ServiceCategory.VISA)
    generalist = _user(UserRole.AGENT, organization_id=ORG_A)
    visa_agent = _user(UserRole.AGENT, organization_id=ORG_A, specializations=["VISA"])
    passport_agent = _user(UserRole.AGENT, organization_id=ORG_A, specializations=["PASSPORT"])

    assert can_process_request(generalist, request)
    assert can_process_request(visa_agent, request)
    assert not can_process_request(passport_agent, request)


def test_citizen_sees_only_own_requests():
    owner = _user(UserRole.USER)
    other = _user(UserRole.USER)
    request = _request(owner.id)
    assert can_view_request(owner, request)
    assert not can_view_request(other, request)
    assert not can_process_request(owner, request)


def test_document_visibility():
    owner = _user(UserRole.USER)
    now = datetime.now(timezone.utc)
    document = UserDocument(
        id=uuid4(),
        user_id=owner.id,
        type=DocumentType.PASSPORT,
        file_url="/tmp/x.pdf",
        file_type="application/pdf",
        created_at=now,
        updated_at=now,
    )
    assert can_view_document(owner, document)
    assert can_view_document(_user(UserRole.AGENT, organization_id=ORG_A), document)
    assert can_view_document(_user(UserRole.INTEL_AGENT), document)
    assert not can_view_document(_user(UserRole.USER), document)


def test_manage_organization():
    ensure_can_manage_organization(_user(UserRole.SUPER_ADMIN), ORG_A)
    ensure_can_manage_organization(_user(UserRole.ADMIN, organization_id=ORG_A), ORG_A)
    with pytest.raises(AuthorizationError):
        ensure_can_manage_organization(_user(UserRole.ADMIN, organization_id=ORG_B), ORG_A)
    with pytest.raises(AuthorizationError):
        ensure_can_manage_organization(_user(UserRole.MANAGER, organization_id=ORG_A), ORG_A)
