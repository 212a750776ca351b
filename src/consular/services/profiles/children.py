from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID, uuid4

from src.consular.access import has_any_role
from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.parental_authority import ParentalAuthority, ParentalRole
from src.consular.domain.models.profile import (
    EDITABLE_PROFILE_STATUSES,
    Gender,
    Profile,
    ProfileCategory,
    ProfileStatus,
)
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.domain.models.user_document import DocumentType
from src.consular.errors import ConflictError, NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.permissions import ensure_can_act_for_profile
from src.consular.services.audit.service import audit_service
from src.consular.services.profiles.service import EDITABLE_FIELDS, profile_service
from src.consular.services.requests.service import request_service

logger = logging.getLogger(__name__)

# Filled in before a minor's registration can be submitted.
REQUIRED_CHILD_FIELDS = ("first_name", "last_name", "birth_date", "birth_place", "nationality")


class ChildProfileService:
    """MINOR profiles managed by the parents who hold authority over them.

    The creating parent receives the first ParentalAuthority; further parents
    or guardians are added by anyone who already holds one.
    """

    def create_child_profile(
        self,
        parent: User,
        data: Mapping[str, Any],
        *,
        role: Optional[ParentalRole] = None,
    ) -> Profile:
        parent_profile = repos.profile_repository.get_by_user(parent.id)
        if parent_profile is None:
            raise NotFoundError("Profile", parent.id)
        if role is None:
            role = ParentalRole.FATHER if parent_profile.gender == Gender.MALE else ParentalRole.MOTHER

        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        child = Profile(
            id=uuid4(),
            user_id=parent.id,
            category=ProfileCategory.MINOR,
            created_at=now,
            updated_at=now,
            **fields,
        )
        profile_service.save(child)
        repos.parental_authority_repository.save(
            ParentalAuthority(
                id=uuid4(),
                child_profile_id=child.id,
                parent_user_id=parent.id,
                role=role,
                created_at=now,
                updated_at=now,
            )
        )
        audit_service.log_event(
            action="create_child_profile",
            resource_type="profile",
            resource_id=str(child.id),
            subject=str(parent.id),
            extra={"role": role.value},
        )
        return child

    def list_child_profiles(self, parent: User) -> List[Profile]:
        children = []
        for authority in repos.parental_authority_repository.list_by_filters(parent_user_id=parent.id):
            child = repos.profile_repository.get(authority.child_profile_id)
            if child is not None:
                children.append(child)
        return sorted(children, key=lambda p: p.created_at, reverse=True)

    def get_child_profile(self, actor: User, child_id: UUID) -> Profile:
        child = self._get_child(child_id)
        if has_any_role(actor, REVIEWER_ROLES | {UserRole.INTEL_AGENT}):
            return child
        ensure_can_act_for_profile(actor, child, "Not authorized to view this child profile")
        return child

    def update_child_profile(self, actor: User, child_id: UUID, changes: Mapping[str, Any]) -> Profile:
        child = self._get_managed(actor, child_id)
        if child.status not in EDITABLE_PROFILE_STATUSES:
            raise ConflictError(f"Profile cannot be edited while {child.status.value}")

        for key, value in changes.items():
            if key in EDITABLE_FIELDS:
                setattr(child, key, value)
        profile_service.save(child)
        return child

    def submit_for_validation(self, actor: User, child_id: UUID, *, service_id: UUID) -> ServiceRequest:
        """File and submit the registration request for a minor.

        The profile must be complete and a birth certificate must have been
        uploaded for it.
        """

        child = self._get_managed(actor, child_id)
        if child.status not in EDITABLE_PROFILE_STATUSES:
            raise ConflictError(f"Profile cannot be submitted while {child.status.value}")

        missing = [name for name in REQUIRED_CHILD_FIELDS if not getattr(child, name)]
        if missing:
            raise ValidationError(f"Missing profile information: {', '.join(missing)}")
        documents = repos.document_repository.list_by_filters(profile_id=child.id)
        if not any(d.type == DocumentType.BIRTH_CERTIFICATE for d in documents):
            raise ValidationError("A birth certificate is required to register a child")

        service = repos.consular_service_repository.get(service_id)
        if service is None:
            raise NotFoundError("Consular service", service_id)
        if service.category != ServiceCategory.REGISTRATION:
            raise ValidationError("Children are registered through a registration service")

        request = request_service.create(actor, service_id=service.id, profile_id=child.id)
        logger.info("Registration request %s filed for child profile %s", request.id, child.id)
        return request_service.submit(actor, request.id)

    def delete_child_profile(self, actor: User, child_id: UUID) -> None:
        child = self._get_managed(actor, child_id)
        if child.status != ProfileStatus.DRAFT:
            raise ConflictError("Only draft child profiles can be deleted")

        for authority in repos.parental_authority_repository.list_by_filters(
            child_profile_id=child.id, active_only=False
        ):
            repos.parental_authority_repository.delete(authority.id)
        repos.profile_repository.delete(child.id)
        audit_service.log_event(
            action="delete_child_profile",
            resource_type="profile",
            resource_id=str(child.id),
            subject=str(actor.id),
        )

    # Parental authority

    def list_parental_authorities(self, actor: User, child_id: UUID) -> List[ParentalAuthority]:
        child = self.get_child_profile(actor, child_id)
        authorities = repos.parental_authority_repository.list_by_filters(child_profile_id=child.id)
        return sorted(authorities, key=lambda a: a.created_at)

    def grant_parental_authority(
        self,
        actor: User,
        child_id: UUID,
        *,
        parent_user_id: UUID,
        role: ParentalRole,
    ) -> ParentalAuthority:
        child = self._get_managed(actor, child_id)
        parent = repos.user_repository.get(parent_user_id)
        if parent is None or not parent.is_active:
            raise NotFoundError("User", parent_user_id)

        existing = repos.parental_authority_repository.list_by_filters(
            parent_user_id=parent.id, child_profile_id=child.id, active_only=False
        )
        now = datetime.now(timezone.utc)
        authority = next(iter(existing), None)
        if authority is not None:
            if authority.is_active:
                raise ConflictError("This parent already holds authority over the child")
            # A revoked authority is reinstated rather than duplicated.
            authority.is_active = True
            authority.role = role
            authority.updated_at = now
        else:
            authority = ParentalAuthority(
                id=uuid4(),
                child_profile_id=child.id,
                parent_user_id=parent.id,
                role=role,
                created_at=now,
                updated_at=now,
            )
        repos.parental_authority_repository.save(authority)
        audit_service.log_event(
            action="grant_parental_authority",
            resource_type="profile",
            resource_id=str(child.id),
            subject=str(actor.id),
            extra={"parent_user_id": str(parent.id), "role": role.value},
        )
        return authority

    def revoke_parental_authority(self, actor: User, child_id: UUID, authority_id: UUID) -> ParentalAuthority:
        child = self._get_managed(actor, child_id)
        authority = repos.parental_authority_repository.get(authority_id)
        if authority is None or authority.child_profile_id != child.id or not authority.is_active:
            raise NotFoundError("Parental authority", authority_id)

        active = list(repos.parental_authority_repository.list_by_filters(child_profile_id=child.id))
        if len(active) <= 1:
            raise ConflictError("A child profile must keep at least one parent")

        authority.is_active = False
        authority.updated_at = datetime.now(timezone.utc)
        repos.parental_authority_repository.save(authority)
        audit_service.log_event(
            action="revoke_parental_authority",
            resource_type="profile",
            resource_id=str(child.id),
            subject=str(actor.id),
            extra={"parent_user_id": str(authority.parent_user_id)},
        )
        return authority

    # Internals

    @staticmethod
    def _get_child(child_id: UUID) -> Profile:
        child = repos.profile_repository.get(child_id)
        if child is None or child.category != ProfileCategory.MINOR:
            raise NotFoundError("Child profile", child_id)
        return child

    def _get_managed(self, actor: User, child_id: UUID) -> Profile:
        child = self._get_child(child_id)
        ensure_can_act_for_profile(actor, child, "You do not hold parental authority over this child")
        return child


child_profile_service = ChildProfileService()
