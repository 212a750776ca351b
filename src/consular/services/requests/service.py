from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

from src.consular.domain.models.consular_service import ServiceCategory
from src.consular.domain.models.notification import NotificationChannel, NotificationType
from src.consular.domain.models.profile import ProfileStatus
from src.consular.domain.models.service_request import (
    REVIEW_OUTCOMES,
    TERMINAL_STATUSES,
    NoteType,
    RequestAction,
    RequestActionType,
    RequestNote,
    RequestPriority,
    RequestStatus,
    ServiceRequest,
    can_transition,
)
from src.consular.domain.models.user import User, UserRole
from src.consular.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.consular.infra.db import inmemory as repos
from src.consular.infra.db.repositories import RequestFilter
from src.consular.permissions import (
    ensure_can_act_for_profile,
    ensure_can_process_request,
    ensure_can_view_request,
    ensure_has_any_role,
)
from src.consular.services.audit.service import audit_service
from src.consular.services.notifications.service import notification_service
from src.consular.services.profiles.service import profile_service

logger = logging.getLogger(__name__)

_STATUS_NOTIFICATIONS: Mapping[RequestStatus, tuple] = {
    RequestStatus.SUBMITTED: (
        NotificationType.REQUEST_SUBMITTED,
        "Request submitted",
        "Your request has been submitted.",
    ),
    RequestStatus.IN_REVIEW: (
        NotificationType.REQUEST_IN_REVIEW,
        "Request in review",
        "An agent is reviewing your request.",
    ),
    RequestStatus.ADDITIONAL_INFO_NEEDED: (
        NotificationType.REQUEST_ADDITIONAL_INFO_NEEDED,
        "Additional information needed",
        "Your request needs more information before it can proceed.",
    ),
    RequestStatus.APPROVED: (NotificationType.REQUEST_APPROVED, "Request approved", "Your request has been approved."),
    RequestStatus.REJECTED: (NotificationType.REQUEST_REJECTED, "Request rejected", "Your request has been rejected."),
    RequestStatus.COMPLETED: (
        NotificationType.REQUEST_COMPLETED,
        "Request completed",
        "Your request has been completed.",
    ),
}

_SORTABLE_FIELDS = frozenset({"created_at", "updated_at", "submitted_at", "last_action_at"})

_ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


@dataclass
class RequestQuery:
    """Caller-supplied filters for listing requests."""

    statuses: Sequence[RequestStatus] = ()
    categories: Sequence[ServiceCategory] = ()
    priorities: Sequence[RequestPriority] = ()
    assigned_to_id: Optional[UUID] = None
    organization_id: Optional[UUID] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    descending: bool = True


@dataclass
class RequestPage:
    items: List[ServiceRequest]
    total: int
    page: int
    limit: int


@dataclass
class RequestStats:
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    by_priority: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)
    completed_today: int = 0
    pending_urgent: int = 0


class RequestWorkflowService:
    """Drives a ServiceRequest from draft to completion.

    Every status change goes through ``ALLOWED_TRANSITIONS``, appends a
    RequestAction to the history and notifies the request owner, plus every
    parent when the request is for a minor. The notification and audit steps
    never fail the mutation.
    """

    # Lookup

    def get_request(self, request_id: UUID) -> ServiceRequest:
        request = repos.request_repository.get(request_id)
        if request is None:
            raise NotFoundError("Service request", request_id)
        return request

    def get_request_for(self, actor: User, request_id: UUID) -> ServiceRequest:
        request = self.get_request(request_id)
        ensure_can_view_request(actor, request)
        return request

    # Mutations

    def create(
        self,
        actor: User,
        *,
        service_id: UUID,
        profile_id: Optional[UUID] = None,
        form_data: Optional[Dict[str, Any]] = None,
        document_ids: Sequence[UUID] = (),
        priority: RequestPriority = RequestPriority.STANDARD,
        appointment_id: Optional[UUID] = None,
    ) -> ServiceRequest:
        service = repos.consular_service_repository.get(service_id)
        if service is None:
            raise NotFoundError("Consular service", service_id)
        if not service.is_active:
            raise ValidationError("This service is not currently available")
        if service.organization_id is None:
            raise ValidationError("This service is not attached to an organization")

        if profile_id is None:
            profile_id = actor.profile_id
        if profile_id is not None:
            profile = repos.profile_repository.get(profile_id)
            if profile is None:
                raise NotFoundError("Profile", profile_id)
            ensure_can_act_for_profile(
                actor, profile, "You can only file requests for your own profile or a child in your care"
            )

        if service.category == ServiceCategory.REGISTRATION:
            if profile_id is None:
                raise ValidationError("A registration request needs a profile")
            self._ensure_no_active_registration(profile_id)
        self._check_attachments(actor, document_ids, appointment_id)

        now = datetime.now(timezone.utc)
        request = ServiceRequest(
            id=uuid4(),
            submitted_by_id=actor.id,
            profile_id=profile_id,
            service_id=service.id,
            service_category=service.category,
            organization_id=service.organization_id,
            appointment_id=appointment_id,
            document_ids=list(document_ids),
            form_data=dict(form_data or {}),
            priority=priority,
            created_at=now,
            updated_at=now,
            last_action_at=now,
            last_action_by=actor.id,
            actions=[RequestAction(type=RequestActionType.CREATED, user_id=actor.id, created_at=now)],
        )
        repos.request_repository.save(request)
        audit_service.log_event(
            action="create_request",
            resource_type="service_request",
            resource_id=str(request.id),
            subject=str(actor.id),
            extra={"category": request.service_category.value},
        )
        return request

    def update_draft(
        self,
        actor: User,
        request_id: UUID,
        *,
        form_data: Optional[Dict[str, Any]] = None,
        document_ids: Optional[Sequence[UUID]] = None,
    ) -> ServiceRequest:
        """Let the owner edit a request that has not been reviewed yet."""

        request = self.get_request(request_id)
        if request.submitted_by_id != actor.id:
            raise AuthorizationError("Only the owner can edit this request")
        if request.status not in {RequestStatus.DRAFT, RequestStatus.ADDITIONAL_INFO_NEEDED}:
            raise ConflictError(f"Request cannot be edited while {request.status.value}")

        if document_ids is not None:
            self._check_attachments(actor, document_ids, None)
            request.document_ids = list(document_ids)
        if form_data is not None:
            request.form_data = {**request.form_data, **form_data}
        request.updated_at = datetime.now(timezone.utc)
        repos.request_repository.save(request)
        return request

    def submit(self, actor: User, request_id: UUID) -> ServiceRequest:
        request = self.get_request(request_id)
        if request.submitted_by_id != actor.id:
            raise AuthorizationError("Only the owner can submit this request")

        if request.service_category == ServiceCategory.REGISTRATION and request.profile_id is not None:
            self._ensure_no_active_registration(request.profile_id, exclude_id=request.id)

        now = datetime.now(timezone.utc)
        previous = self._transition(request, RequestStatus.SUBMITTED, actor, now=now)
        request.submitted_at = now
        repos.request_repository.save(request)
        self._audit_transition(request, actor, previous)

        if request.service_category == ServiceCategory.REGISTRATION:
            profile_service.mark_submitted(request.profile_id)

        self._notify_status(request)
        return request

    def assign(self, actor: User, request_id: UUID, agent_id: UUID) -> ServiceRequest:
        request = self.get_request(request_id)
        ensure_can_process_request(actor, request)
        if request.status in TERMINAL_STATUSES or request.status == RequestStatus.DRAFT:
            raise ConflictError(f"Request cannot be assigned while {request.status.value}")

        agent = repos.user_repository.get(agent_id)
        if agent is None or not agent.is_active:
            raise NotFoundError("Agent", agent_id)
        if not agent.has_role(UserRole.AGENT) and not agent.has_role(UserRole.MANAGER):
            raise ValidationError("Requests can only be assigned to agents")
        if agent.organization_id != request.organization_id:
            raise ValidationError("Agent does not belong to the request's organization")

        now = datetime.now(timezone.utc)
        previous = request.assigned_to_id
        request.assigned_to_id = agent.id
        request.assigned_at = now
        self._record(
            request,
            RequestActionType.ASSIGNMENT,
            actor,
            now=now,
            data={"agent_id": str(agent.id), "previous_agent_id": str(previous) if previous else None},
        )

        moved_from = None
        if request.status == RequestStatus.SUBMITTED:
            moved_from = self._transition(request, RequestStatus.IN_REVIEW, actor, now=now)
        moved = moved_from is not None
        repos.request_repository.save(request)
        if moved:
            self._audit_transition(request, actor, moved_from)

        if request.service_category == ServiceCategory.REGISTRATION and moved:
            profile_service.mark_in_review(request.profile_id)

        notification_service.notify(
            user_id=agent.id,
            type=NotificationType.REQUEST_ASSIGNED,
            title="New request assigned",
            message="A service request has been assigned to you.",
            metadata={"request_id": str(request.id)},
        )
        if moved:
            self._notify_status(request)
        audit_service.log_event(
            action="assign_request",
            resource_type="service_request",
            resource_id=str(request.id),
            subject=str(actor.id),
            extra={"agent_id": str(agent.id)},
        )
        return request

    def review(
        self,
        actor: User,
        request_id: UUID,
        *,
        outcome: RequestStatus,
        note: Optional[str] = None,
    ) -> ServiceRequest:
        if outcome not in REVIEW_OUTCOMES:
            raise ValidationError(f"{outcome.value} is not a review outcome")

        request = self.get_request(request_id)
        ensure_can_process_request(actor, request)

        now = datetime.now(timezone.utc)
        previous = self._transition(request, outcome, actor, now=now)
        if note:
            request.notes.append(
                RequestNote(id=uuid4(), author_id=actor.id, type=NoteType.FEEDBACK, content=note, created_at=now)
            )
        repos.request_repository.save(request)
        self._audit_transition(request, actor, previous)

        self._notify_status(request, note=note)
        return request

    def complete(self, actor: User, request_id: UUID) -> ServiceRequest:
        request = self.get_request(request_id)
        ensure_can_process_request(actor, request)

        now = datetime.now(timezone.utc)
        previous = self._transition(request, RequestStatus.COMPLETED, actor, now=now)
        request.completed_at = now
        repos.request_repository.save(request)
        self._audit_transition(request, actor, previous)

        self._notify_status(request)
        return request

    def delete(self, actor: User, request_id: UUID) -> None:
        request = self.get_request(request_id)
        if request.submitted_by_id != actor.id:
            raise AuthorizationError("Only the owner can delete this request")
        if request.status != RequestStatus.DRAFT:
            raise ConflictError("Only draft requests can be deleted")

        repos.request_repository.delete(request.id)
        audit_service.log_event(
            action="delete_request",
            resource_type="service_request",
            resource_id=str(request.id),
            subject=str(actor.id),
        )

    def add_note(
        self,
        actor: User,
        request_id: UUID,
        *,
        content: str,
        type: NoteType = NoteType.INTERNAL,
    ) -> RequestNote:
        if not content.strip():
            raise ValidationError("Note content cannot be empty")

        request = self.get_request(request_id)
        ensure_can_process_request(actor, request)

        now = datetime.now(timezone.utc)
        note = RequestNote(id=uuid4(), author_id=actor.id, type=type, content=content, created_at=now)
        request.notes.append(note)
        self._record(request, RequestActionType.NOTE_ADDED, actor, now=now, data={"note_type": type.value})
        repos.request_repository.save(request)

        if type == NoteType.FEEDBACK:
            notification_service.notify(
                user_id=request.submitted_by_id,
                type=NotificationType.FEEDBACK,
                title="New message on your request",
                message=content,
                channels=(NotificationChannel.APP, NotificationChannel.EMAIL),
                metadata={"request_id": str(request.id)},
            )
        return note

    def validate_registration(
        self,
        actor: User,
        request_id: UUID,
        *,
        status: ProfileStatus,
        notes: Optional[str] = None,
    ) -> ServiceRequest:
        """Validate or reject the profile behind a registration request."""

        ensure_has_any_role(actor, {UserRole.ADMIN, UserRole.SUPER_ADMIN}, "Only admins can validate registrations")
        if status not in {ProfileStatus.VALIDATED, ProfileStatus.REJECTED}:
            raise ValidationError("Registration can only be validated or rejected")

        request = self.get_request(request_id)
        ensure_can_process_request(actor, request)
        if request.service_category != ServiceCategory.REGISTRATION:
            raise ValidationError("Request is not a consular registration")
        if request.profile_id is None:
            raise ValidationError("Registration request has no profile")
        profile = repos.profile_repository.get(request.profile_id)
        if profile is None:
            raise NotFoundError("Profile", request.profile_id)

        target = RequestStatus.APPROVED if status == ProfileStatus.VALIDATED else RequestStatus.REJECTED
        now = datetime.now(timezone.utc)
        previous = self._transition(request, target, actor, now=now)
        if notes:
            request.notes.append(
                RequestNote(id=uuid4(), author_id=actor.id, type=NoteType.FEEDBACK, content=notes, created_at=now)
            )
        repos.request_repository.save(request)
        self._audit_transition(request, actor, previous)

        profile_service.record_validation(profile, status=status, validator_id=actor.id, notes=notes)

        validated = status == ProfileStatus.VALIDATED
        notification_service.notify(
            user_id=profile.user_id,
            type=NotificationType.PROFILE_VALIDATED if validated else NotificationType.PROFILE_REJECTED,
            title="Registration validated" if validated else "Registration rejected",
            message=notes or ("Your consular registration has been validated." if validated
                              else "Your consular registration has been rejected."),
            channels=(NotificationChannel.APP, NotificationChannel.EMAIL),
            metadata={"request_id": str(request.id), "profile_id": str(profile.id)},
        )
        audit_service.log_event(
            action="validate_registration",
            resource_type="profile",
            resource_id=str(profile.id),
            subject=str(actor.id),
            extra={"status": status.value, "request_id": str(request.id)},
        )
        return request

    # Queries

    def scope_filter(self, actor: User) -> RequestFilter:
        """Translate the actor's roles into the set of requests they may see."""

        if actor.has_role(UserRole.SUPER_ADMIN):
            return RequestFilter()
        if any(actor.has_role(role) for role in _ADMIN_ROLES):
            if actor.organization_id is None:
                raise AuthorizationError("Staff account has no organization")
            return RequestFilter(organization_id=actor.organization_id)
        if actor.has_role(UserRole.AGENT):
            if actor.organization_id is None:
                raise AuthorizationError("Staff account has no organization")
            return RequestFilter(organization_id=actor.organization_id, agent_scope_id=actor.id)
        return RequestFilter(submitted_by_id=actor.id)

    def list_for_profile(self, actor: User, profile_id: UUID) -> List[ServiceRequest]:
        """Requests filed for one profile, newest first. Used by parents for their children."""

        profile = repos.profile_repository.get(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        ensure_can_act_for_profile(actor, profile, "Not authorized to list requests for this profile")
        requests = repos.request_repository.list_by_filters(RequestFilter(profile_id=profile_id))
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    def list(self, actor: User, query: Optional[RequestQuery] = None) -> RequestPage:
        query = query or RequestQuery()
        if query.page < 1 or query.limit < 1:
            raise ValidationError("Page and limit must be positive")
        if query.sort_by not in _SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by {query.sort_by}")

        request_filter = self.scope_filter(actor)
        request_filter.statuses = set(query.statuses)
        request_filter.categories = set(query.categories)
        request_filter.priorities = set(query.priorities)
        if query.assigned_to_id is not None:
            request_filter.assigned_to_id = query.assigned_to_id
        if query.organization_id is not None:
            if request_filter.organization_id not in (None, query.organization_id):
                return RequestPage(items=[], total=0, page=query.page, limit=query.limit)
            request_filter.organization_id = query.organization_id

        requests = list(repos.request_repository.list_by_filters(request_filter))
        if query.search:
            requests = [r for r in requests if self._matches_search(r, query.search)]

        epoch = datetime.min.replace(tzinfo=timezone.utc)
        requests.sort(key=lambda r: getattr(r, query.sort_by) or epoch, reverse=query.descending)

        start = (query.page - 1) * query.limit
        return RequestPage(
            items=requests[start:start + query.limit],
            total=len(requests),
            page=query.page,
            limit=query.limit,
        )

    def stats(self, actor: User, *, organization_id: Optional[UUID] = None) -> RequestStats:
        ensure_has_any_role(
            actor,
            {UserRole.AGENT, UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN},
            "Only staff can read request statistics",
        )
        request_filter = self.scope_filter(actor)
        if organization_id is not None and actor.has_role(UserRole.SUPER_ADMIN):
            request_filter.organization_id = organization_id

        stats = RequestStats()
        today = datetime.now(timezone.utc).date()
        for request in repos.request_repository.list_by_filters(request_filter):
            stats.total += 1
            stats.by_status[request.status.value] = stats.by_status.get(request.status.value, 0) + 1
            stats.by_priority[request.priority.value] = stats.by_priority.get(request.priority.value, 0) + 1
            category = request.service_category.value
            stats.by_category[category] = stats.by_category.get(category, 0) + 1
            if request.completed_at is not None and request.completed_at.date() == today:
                stats.completed_today += 1
            if request.priority == RequestPriority.URGENT and request.status in {
                RequestStatus.SUBMITTED,
                RequestStatus.IN_REVIEW,
            }:
                stats.pending_urgent += 1
        return stats

    # Internals

    def _ensure_no_active_registration(self, profile_id: UUID, *, exclude_id: Optional[UUID] = None) -> None:
        existing = repos.request_repository.list_by_filters(
            RequestFilter(profile_id=profile_id, categories={ServiceCategory.REGISTRATION})
        )
        for other in existing:
            if other.id != exclude_id and other.is_active:
                raise ConflictError("This profile already has an active registration request")

    @staticmethod
    def _check_attachments(
        actor: User, document_ids: Sequence[UUID], appointment_id: Optional[UUID]
    ) -> None:
        """Only the caller's own documents and appointment can go on a request."""

        for document_id in document_ids:
            document = repos.document_repository.get(document_id)
            if document is None:
                raise NotFoundError("Document", document_id)
            if document.user_id != actor.id:
                raise AuthorizationError("Only your own documents can be attached to a request")
        if appointment_id is not None:
            appointment = repos.appointment_repository.get(appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment", appointment_id)
            if appointment.attendee_id != actor.id:
                raise AuthorizationError("Only your own appointment can be attached to a request")

    def _transition(
        self, request: ServiceRequest, target: RequestStatus, actor: User, *, now: datetime
    ) -> RequestStatus:
        """Apply ``target`` in memory and return the previous status.

        Callers save the request and then call ``_audit_transition``.
        """

        current = request.status
        if not can_transition(current, target):
            logger.info("Rejected transition %s -> %s for request %s", current.value, target.value, request.id)
            raise InvalidTransitionError("service request", current.value, target.value)
        request.status = target
        self._record(
            request,
            RequestActionType.STATUS_CHANGE,
            actor,
            now=now,
            data={"from": current.value, "to": target.value},
        )
        return current

    @staticmethod
    def _audit_transition(request: ServiceRequest, actor: User, previous: RequestStatus) -> None:
        audit_service.log_event(
            action="change_request_status",
            resource_type="service_request",
            resource_id=str(request.id),
            subject=str(actor.id),
            extra={"from": previous.value, "to": request.status.value},
        )

    @staticmethod
    def _record(
        request: ServiceRequest,
        action_type: RequestActionType,
        actor: User,
        *,
        now: datetime,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        request.actions.append(RequestAction(type=action_type, user_id=actor.id, created_at=now, data=data or {}))
        request.updated_at = now
        request.last_action_at = now
        request.last_action_by = actor.id

    def _notify_status(self, request: ServiceRequest, *, note: Optional[str] = None) -> None:
        entry = _STATUS_NOTIFICATIONS.get(request.status)
        if entry is None:
            return
        notification_type, title, message = entry
        if note:
            message = f"{message}\n\n{note}"
        for user_id in self._followers(request):
            notification_service.notify(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                channels=(NotificationChannel.APP, NotificationChannel.EMAIL),
                metadata={"request_id": str(request.id), "status": request.status.value},
            )

    @staticmethod
    def _followers(request: ServiceRequest) -> List[UUID]:
        """The owner first, then every other parent of the minor the request is for."""

        followers = [request.submitted_by_id]
        if request.profile_id is not None:
            for authority in repos.parental_authority_repository.list_by_filters(
                child_profile_id=request.profile_id
            ):
                if authority.parent_user_id not in followers:
                    followers.append(authority.parent_user_id)
        return followers

    @staticmethod
    def _matches_search(request: ServiceRequest, search: str) -> bool:
        needle = search.strip().lower()
        if not needle:
            return True
        candidates: List[str] = [str(request.id)]
        service = repos.consular_service_repository.get(request.service_id)
        if service is not None:
            candidates.append(service.name)
        if request.profile_id is not None:
            profile = repos.profile_repository.get(request.profile_id)
            if profile is not None:
                candidates.extend(
                    value
                    for value in (profile.first_name, profile.last_name, profile.email, profile.phone_number)
                    if value
                )
        return any(needle in str(candidate).lower() for candidate in candidates)


request_service = RequestWorkflowService()
