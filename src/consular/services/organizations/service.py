from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

from src.consular.domain.models.consular_service import ConsularService, ServiceCategory, ServiceStep
from src.consular.domain.models.organization import Organization, OrganizationStatus, OrganizationType
from src.consular.domain.models.user import User, UserRole
from src.consular.domain.models.user_document import DocumentType
from src.consular.errors import NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.permissions import ensure_can_manage_organization, ensure_has_any_role
from src.consular.services.audit.service import audit_service

# Service fields an admin may change after creation.
_UPDATABLE_SERVICE_FIELDS = frozenset(
    {
        "name",
        "description",
        "steps",
        "required_documents",
        "optional_documents",
        "requires_appointment",
        "is_active",
    }
)


class OrganizationService:
    """Tenants (embassies/consulates) and the service templates they offer."""

    # Organizations

    def create_organization(
        self,
        actor: User,
        *,
        name: str,
        type: OrganizationType = OrganizationType.CONSULATE,
        country_codes: Sequence[str] = (),
    ) -> Organization:
        ensure_has_any_role(actor, {UserRole.SUPER_ADMIN}, "Only a super-admin can create organizations")
        organization = Organization(
            id=uuid4(),
            name=name,
            type=type,
            country_codes=[code.upper() for code in country_codes],
            created_at=datetime.now(timezone.utc),
        )
        repos.organization_repository.save(organization)
        audit_service.log_event(
            action="create_organization", resource_type="organization", resource_id=str(organization.id)
        )
        return organization

    def get_organization(self, organization_id: UUID) -> Organization:
        organization = repos.organization_repository.get(organization_id)
        if organization is None:
            raise NotFoundError("Organization", organization_id)
        return organization

    def list_organizations(self, *, active_only: bool = True) -> List[Organization]:
        organizations = repos.organization_repository.list_all()
        return [
            org for org in organizations if not active_only or org.status == OrganizationStatus.ACTIVE
        ]

    # Consular services

    def create_service(
        self,
        actor: User,
        *,
        organization_id: UUID,
        name: str,
        category: ServiceCategory,
        description: Optional[str] = None,
        steps: Sequence[ServiceStep] = (),
        required_documents: Sequence[DocumentType] = (),
        optional_documents: Sequence[DocumentType] = (),
        requires_appointment: bool = False,
    ) -> ConsularService:
        self.get_organization(organization_id)
        ensure_can_manage_organization(actor, organization_id)

        overlap = set(required_documents) & set(optional_documents)
        if overlap:
            raise ValidationError("A document cannot be both required and optional")

        now = datetime.now(timezone.utc)
        service = ConsularService(
            id=uuid4(),
            organization_id=organization_id,
            name=name,
            description=description,
            category=category,
            steps=list(steps),
            required_documents=list(required_documents),
            optional_documents=list(optional_documents),
            requires_appointment=requires_appointment,
            created_at=now,
            updated_at=now,
        )
        repos.consular_service_repository.save(service)
        audit_service.log_event(
            action="create_consular_service",
            resource_type="consular_service",
            resource_id=str(service.id),
            extra={"category": category.value},
        )
        return service

    def update_service(self, actor: User, service_id: UUID, changes: Mapping[str, Any]) -> ConsularService:
        service = self.get_service(service_id)
        ensure_can_manage_organization(actor, service.organization_id)

        for key, value in changes.items():
            if key in _UPDATABLE_SERVICE_FIELDS:
                setattr(service, key, value)
        if set(service.required_documents) & set(service.optional_documents):
            raise ValidationError("A document cannot be both required and optional")

        service.updated_at = datetime.now(timezone.utc)
        repos.consular_service_repository.save(service)
        audit_service.log_event(
            action="update_consular_service",
            resource_type="consular_service",
            resource_id=str(service.id),
            extra={"fields": sorted(k for k in changes if k in _UPDATABLE_SERVICE_FIELDS)},
        )
        return service

    def get_service(self, service_id: UUID) -> ConsularService:
        service = repos.consular_service_repository.get(service_id)
        if service is None:
            raise NotFoundError("Consular service", service_id)
        return service

    def list_services(
        self,
        *,
        organization_id: Optional[UUID] = None,
        category: Optional[ServiceCategory] = None,
        active_only: bool = True,
    ) -> List[ConsularService]:
        services = repos.consular_service_repository.list_by_filters(
            organization_id=organization_id,
            category=category,
            active_only=active_only,
        )
        return sorted(services, key=lambda s: s.name)


organization_service = OrganizationService()
