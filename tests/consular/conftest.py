from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from src.consular.domain.models.consular_service import ConsularService, ServiceCategory
from src.consular.domain.models.notification import NotificationChannel
from src.consular.domain.models.organization import Organization
from src.consular.domain.models.profile import Profile
from src.consular.domain.models.user import User, UserRole
from src.consular.infra.db import inmemory as repos
from src.consular.infra.docstore.mirror import NullProfileMirror, set_profile_mirror
from src.consular.infra.storage.files import LocalFileStorageBackend
from src.consular.main import app
from src.consular.services.assistant.backends import DemoFormHelpBackend
from src.consular.services.audit.service import audit_service
from src.consular.services.assistant.service import assistant_service
from src.consular.services.notifications.providers import LoggingProvider
from src.consular.services.notifications.service import notification_service
from src.consular.services.users.identity import identity_provider
from src.consular.tenancy import set_current_organization


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Fresh repositories, log-only providers and a temp upload dir for every test."""

    repos.reset_inmemory_repositories()
    notification_service.set_providers(
        {
            NotificationChannel.EMAIL: LoggingProvider(NotificationChannel.EMAIL),
            NotificationChannel.SMS: LoggingProvider(NotificationChannel.SMS),
        }
    )
    set_profile_mirror(NullProfileMirror())
    assistant_service.set_backend(DemoFormHelpBackend())
    monkeypatch.setattr(
        "src.consular.services.documents.service.file_storage_backend",
        LocalFileStorageBackend(tmp_path / "uploads"),
    )
    audit_service.clear()
    set_current_organization(None)
    yield
    notification_service.set_providers(None)
    set_profile_mirror(None)
    assistant_service.set_backend(None)
    repos.reset_inmemory_repositories()


def _make_organization(name: str = "Consulat de Paris") -> Organization:
    organization = Organization(id=uuid4(), name=name, country_codes=["FR"], created_at=datetime.now(timezone.utc))
    repos.organization_repository.save(organization)
    return organization


def _make_user(
    roles: Iterable[UserRole] = (UserRole.USER,),
    *,
    organization_id: Optional[UUID] = None,
    email: Optional[str] = None,
    phone_number: Optional[str] = None,
    specializations: Iterable[str] = (),
) -> User:
    user = User(
        id=uuid4(),
        email=email or f"user-{uuid4().hex[:8]}@example.com",
        name="Test User",
        phone_number=phone_number,
        roles=list(roles),
        organization_id=organization_id,
        specializations=list(specializations),
        created_at=datetime.now(timezone.utc),
    )
    repos.user_repository.save(user)
    return user


def _make_profile(user: User, *, first_name: str = "Marie", last_name: str = "Nguema") -> Profile:
    now = datetime.now(timezone.utc)
    profile = Profile(
        id=uuid4(),
        user_id=user.id,
        first_name=first_name,
        last_name=last_name,
        email=str(user.email),
        created_at=now,
        updated_at=now,
    )
    repos.profile_repository.save(profile)
    user.profile_id = profile.id
    repos.user_repository.save(user)
    return profile


def _make_service(
    organization: Organization,
    *,
    category: ServiceCategory = ServiceCategory.PASSPORT,
    name: str = "Passport renewal",
    is_active: bool = True,
) -> ConsularService:
    now = datetime.now(timezone.utc)
    service = ConsularService(
        id=uuid4(),
        organization_id=organization.id,
        name=name,
        category=category,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    repos.consular_service_repository.save(service)
    return service


def _auth_headers(user: User) -> Dict[str, str]:
    token = identity_provider.issue_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_organization():
    return _make_organization


@pytest.fixture
def make_user():
    return _make_user


@pytest.fixture
def make_profile():
    return _make_profile


@pytest.fixture
def make_service():
    return _make_service


@pytest.fixture
def auth_headers():
    return _auth_headers


@pytest.fixture
def organization() -> Organization:
    return _make_organization()


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
