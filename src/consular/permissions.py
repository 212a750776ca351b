from __future__ import annotations

import logging
from typing import Iterable, Optional
from uuid import UUID

from src.consular.access import has_any_role
from src.consular.domain.models.profile import Profile, ProfileCategory
from src.consular.domain.models.service_request import ServiceRequest
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.domain.models.user_document import UserDocument
from src.consular.errors import AuthorizationError
from src.consular.infra.db import inmemory as repos

logger = logging.getLogger(__name__)


def ensure_has_any_role(user: User, roles: Iterable[UserRole], message: str = "Insufficient permissions") -> None:
    roles = list(roles)
    if not has_any_role(user, roles):
        logger.warning("RBAC: user %s denied, needs one of %s", user.id, [r.value for r in roles])
        raise AuthorizationError(message)


def _same_organization(user: User, organization_id: Optional[UUID]) -> bool:
    return user.organization_id is not None and user.organization_id == organization_id


def _agent_covers(user: User, request: ServiceRequest) -> bool:
    # Agents without specializations handle every category of their post.
    if not _same_organization(user, request.organization_id):
        return False
    return not user.specializations or request.service_category.value in user.specializations


def can_process_request(user: User, request: ServiceRequest) -> bool:
    """Staff may assign, review and complete requests of their organization."""

    if user.has_role(UserRole.SUPER_ADMIN):
        return True
    if has_any_role(user, {UserRole.ADMIN, UserRole.MANAGER}) and _same_organization(user, request.organization_id):
        return True
    if user.has_role(UserRole.AGENT) and _agent_covers(user, request):
        return True
    return False


def has_parental_authority(user_id: UUID, child_profile_id: UUID) -> bool:
    authorities = repos.parental_authority_repository.list_by_filters(
        parent_user_id=user_id, child_profile_id=child_profile_id
    )
    return any(True for _ in authorities)


def can_act_for_profile(user: User, profile: Profile) -> bool:
    """Adults act for their own profile, parents for the minors in their care."""

    if profile.category == ProfileCategory.MINOR:
        return has_parental_authority(user.id, profile.id)
    return profile.user_id == user.id


def ensure_can_act_for_profile(user: User, profile: Profile, message: str = "Not authorized for this profile") -> None:
    if not can_act_for_profile(user, profile):
        raise AuthorizationError(message)


def can_view_request(user: User, request: ServiceRequest) -> bool:
    if request.submitted_by_id == user.id or can_process_request(user, request):
        return True
    # Every parent of a minor follows the requests filed for them.
    return request.profile_id is not None and has_parental_authority(user.id, request.profile_id)


def ensure_can_view_request(user: User, request: ServiceRequest) -> None:
    if not can_view_request(user, request):
        raise AuthorizationError("Not authorized to view this request")


def ensure_can_process_request(user: User, request: ServiceRequest) -> None:
    if not can_process_request(user, request):
        raise AuthorizationError("Not authorized to process this request")


def can_view_document(user: User, document: UserDocument) -> bool:
    if document.user_id == user.id:
        return True
    return has_any_role(user, REVIEWER_ROLES | {UserRole.INTEL_AGENT})


def ensure_can_view_document(user: User, document: UserDocument) -> None:
    if not can_view_document(user, document):
        raise AuthorizationError("Not authorized to view this document")


def ensure_can_manage_organization(user: User, organization_id: UUID) -> None:
    """SUPER_ADMIN manages every organization, ADMIN only their own."""

    if user.has_role(UserRole.SUPER_ADMIN):
        return
    if user.has_role(UserRole.ADMIN) and _same_organization(user, organization_id):
        return
    raise AuthorizationError("Not authorized to manage this organization")
