from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import UUID, uuid4

from src.consular.access import has_any_role
from src.consular.domain.models.profile import EDITABLE_PROFILE_STATUSES, Profile, ProfileStatus
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.errors import AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError
from src.consular.infra.db import inmemory as repos
from src.consular.infra.docstore.mirror import mirror_profile, mirror_user
from src.consular.permissions import can_act_for_profile

# Fields a citizen may set on their own profile.
EDITABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "birth_date",
        "birth_place",
        "birth_country",
        "nationality",
        "gender",
        "address",
        "phone_number",
        "email",
    }
)


class ProfileService:
    def save(self, profile: Profile) -> None:
        profile.updated_at = datetime.now(timezone.utc)
        repos.profile_repository.save(profile)
        mirror_profile(profile)

    def create_profile(self, user: User, data: Mapping[str, Any]) -> Profile:
        if repos.profile_repository.get_by_user(user.id) is not None:
            raise ConflictError("A profile already exists for this account")

        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        fields.setdefault("email", user.email)
        fields.setdefault("phone_number", user.phone_number)
        profile = Profile(id=uuid4(), user_id=user.id, created_at=now, updated_at=now, **fields)
        self.save(profile)

        user.profile_id = profile.id
        repos.user_repository.save(user)
        mirror_user(user)
        return profile

    def get_own_profile(self, user: User) -> Profile:
        profile = repos.profile_repository.get_by_user(user.id)
        if profile is None:
            raise NotFoundError("Profile", user.id)
        return profile

    def get_profile(self, actor: User, profile_id: UUID) -> Profile:
        profile = repos.profile_repository.get(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        if not (
            can_act_for_profile(actor, profile)
            or has_any_role(actor, REVIEWER_ROLES | {UserRole.INTEL_AGENT})
        ):
            raise AuthorizationError("Not authorized to view this profile")
        return profile

    def update_own_profile(self, user: User, changes: Mapping[str, Any]) -> Profile:
        profile = self.get_own_profile(user)
        if profile.status not in EDITABLE_PROFILE_STATUSES:
            raise ConflictError(f"Profile cannot be edited while {profile.status.value}")

        for key, value in changes.items():
            if key in EDITABLE_FIELDS:
                setattr(profile, key, value)
        self.save(profile)
        return profile

    def mark_submitted(self, profile_id: Optional[UUID]) -> Optional[Profile]:
        """Move a draft or rejected profile to SUBMITTED when its registration is submitted."""

        if profile_id is None:
            return None
        profile = repos.profile_repository.get(profile_id)
        if profile is None:
            return None
        if profile.status in EDITABLE_PROFILE_STATUSES:
            profile.status = ProfileStatus.SUBMITTED
            self.save(profile)
        return profile

    def mark_in_review(self, profile_id: Optional[UUID]) -> None:
        if profile_id is None:
            return
        profile = repos.profile_repository.get(profile_id)
        if profile is not None and profile.status == ProfileStatus.SUBMITTED:
            profile.status = ProfileStatus.IN_REVIEW
            self.save(profile)

    def record_validation(
        self,
        profile: Profile,
        *,
        status: ProfileStatus,
        validator_id: UUID,
        notes: Optional[str] = None,
    ) -> Profile:
        if status not in {ProfileStatus.VALIDATED, ProfileStatus.REJECTED}:
            raise InvalidTransitionError("profile", profile.status.value, status.value)
        profile.status = status
        profile.validated_at = datetime.now(timezone.utc)
        profile.validated_by = validator_id
        profile.validation_notes = notes
        self.save(profile)
        return profile


profile_service = ProfileService()
