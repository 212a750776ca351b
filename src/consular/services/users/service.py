from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID, uuid4

from src.consular.domain.models.user import User, UserRole, UserStatus
from src.consular.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.infra.docstore.mirror import mirror_user
from src.consular.permissions import ensure_can_manage_organization, ensure_has_any_role
from src.consular.services.audit.service import audit_service
from src.consular.services.users.identity import identity_provider

logger = logging.getLogger(__name__)

# Roles an organization ADMIN may hand out; anything above needs SUPER_ADMIN.
_ADMIN_GRANTABLE_ROLES = frozenset({UserRole.AGENT, UserRole.MANAGER, UserRole.INTEL_AGENT})


class UserService:
    """Account lifecycle: citizen sign-up, staff provisioning and soft delete."""

    def _save(self, user: User) -> None:
        repos.user_repository.save(user)
        mirror_user(user)

    def register_user(
        self,
        *,
        email: str,
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> User:
        if repos.user_repository.get_by_email(email) is not None:
            raise ConflictError("An account already exists for this email")

        user = User(
            id=uuid4(),
            email=email,
            name=name,
            phone_number=phone_number,
            roles=[UserRole.USER],
            created_at=datetime.now(timezone.utc),
        )
        self._save(user)
        logger.info("Registered user %s", user.id)
        return user

    def create_staff_user(
        self,
        actor: User,
        *,
        email: str,
        roles: Sequence[UserRole],
        organization_id: Optional[UUID],
        name: Optional[str] = None,
        phone_number: Optional[str] = None,
        specializations: Sequence[str] = (),
    ) -> User:
        ensure_has_any_role(actor, {UserRole.ADMIN, UserRole.SUPER_ADMIN})
        if not roles:
            raise ValidationError("At least one role is required")

        if not actor.has_role(UserRole.SUPER_ADMIN):
            if not set(roles) <= _ADMIN_GRANTABLE_ROLES:
                raise AuthorizationError("Only a super-admin can grant these roles")
            organization_id = organization_id or actor.organization_id

        if UserRole.SUPER_ADMIN not in roles:
            if organization_id is None:
                raise ValidationError("Staff members must belong to an organization")
            if repos.organization_repository.get(organization_id) is None:
                raise NotFoundError("Organization", organization_id)
            ensure_can_manage_organization(actor, organization_id)

        if repos.user_repository.get_by_email(email) is not None:
            raise ConflictError("An account already exists for this email")

        user = User(
            id=uuid4(),
            email=email,
            name=name,
            phone_number=phone_number,
            roles=list(roles),
            organization_id=organization_id,
            specializations=list(specializations),
            created_at=datetime.now(timezone.utc),
        )
        self._save(user)
        audit_service.log_event(
            action="create_staff_user",
            resource_type="user",
            resource_id=str(user.id),
            extra={"roles": [r.value for r in user.roles]},
        )
        return user

    def get_user(self, user_id: UUID) -> User:
        user = repos.user_repository.get(user_id)
        if user is None or user.status == UserStatus.DELETED:
            raise NotFoundError("User", user_id)
        return user

    def list_staff(self, actor: User, *, role: Optional[UserRole] = None) -> List[User]:
        ensure_has_any_role(actor, {UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPER_ADMIN})
        organization_id = None if actor.has_role(UserRole.SUPER_ADMIN) else actor.organization_id
        users = repos.user_repository.list_by_filters(organization_id=organization_id, role=role)
        return [user for user in users if user.roles != [UserRole.USER]]

    def soft_delete_user(self, actor: User, user_id: UUID) -> User:
        user = self.get_user(user_id)
        if user.id == actor.id:
            raise ValidationError("You cannot delete your own account")
        if not actor.has_role(UserRole.SUPER_ADMIN):
            if user.organization_id is None:
                raise AuthorizationError("Not authorized to delete this user")
            ensure_can_manage_organization(actor, user.organization_id)

        user.status = UserStatus.DELETED
        user.deleted_at = datetime.now(timezone.utc)
        self._save(user)
        identity_provider.revoke_user_sessions(user.id)

        audit_service.log_event(action="delete_user", resource_type="user", resource_id=str(user.id))
        return user


user_service = UserService()
