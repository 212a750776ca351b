from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from src.consular.config import settings
from src.consular.domain.models.notification import NotificationChannel, NotificationType
from src.consular.domain.models.user import REVIEWER_ROLES, User, UserRole
from src.consular.domain.models.user_document import DocumentStatus, DocumentType, UserDocument
from src.consular.errors import AuthorizationError, NotFoundError, ValidationError
from src.consular.infra.db import inmemory as repos
from src.consular.infra.storage.files import file_storage_backend
from src.consular.permissions import ensure_can_act_for_profile, ensure_can_view_document, ensure_has_any_role
from src.consular.services.audit.service import audit_service
from src.consular.services.notifications.service import notification_service

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

_NOT_PROVIDED: Any = object()


class DocumentService:
    """User documents: upload, owner edits and staff validation."""

    def get_document(self, actor: User, document_id: UUID) -> UserDocument:
        document = repos.document_repository.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        ensure_can_view_document(actor, document)
        return document

    def list_documents(
        self,
        actor: User,
        *,
        user_id: Optional[UUID] = None,
        request_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
    ) -> List[UserDocument]:
        if user_id is None:
            user_id = actor.id
        if user_id != actor.id:
            ensure_has_any_role(
                actor, REVIEWER_ROLES | {UserRole.INTEL_AGENT}, "Not authorized to list these documents"
            )
        documents = repos.document_repository.list_by_filters(user_id=user_id, request_id=request_id, status=status)
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    def upload(
        self,
        actor: User,
        *,
        content: bytes,
        content_type: str,
        type: DocumentType,
        profile_id: Optional[UUID] = None,
        request_id: Optional[UUID] = None,
        issued_at: Optional[date] = None,
        expires_at: Optional[date] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UserDocument:
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > settings.max_upload_bytes:
            raise ValidationError("Uploaded file is too large")
        extension = ALLOWED_CONTENT_TYPES.get(content_type)
        if extension is None:
            raise ValidationError(f"Unsupported file type: {content_type}")
        self._check_dates(issued_at, expires_at)

        if profile_id is not None:
            profile = repos.profile_repository.get(profile_id)
            if profile is None:
                raise NotFoundError("Profile", profile_id)
            ensure_can_act_for_profile(actor, profile, "Documents can only be filed under your own profile")

        if request_id is not None:
            request = repos.request_repository.get(request_id)
            if request is None:
                raise NotFoundError("Service request", request_id)
            if request.submitted_by_id != actor.id:
                raise AuthorizationError("Documents can only be attached to your own requests")

        document_id = uuid4()
        file_url = file_storage_backend.save_file(content, name=f"{document_id}{extension}")
        try:
            now = datetime.now(timezone.utc)
            document = UserDocument(
                id=document_id,
                user_id=actor.id,
                profile_id=profile_id or actor.profile_id,
                request_id=request_id,
                type=type,
                file_url=file_url,
                file_type=content_type,
                issued_at=issued_at,
                expires_at=expires_at,
                metadata=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            repos.document_repository.save(document)
            if request_id is not None:
                request.document_ids.append(document.id)
                repos.request_repository.save(request)
        except Exception:
            logger.exception("Failed to record document %s; removing stored file", document_id)
            file_storage_backend.delete_file(file_url)
            raise

        audit_service.log_event(
            action="upload_document",
            resource_type="user_document",
            resource_id=str(document.id),
            subject=str(actor.id),
            extra={"type": type.value},
        )
        return document

    def update(
        self,
        actor: User,
        document_id: UUID,
        *,
        issued_at: Optional[date] = _NOT_PROVIDED,
        expires_at: Optional[date] = _NOT_PROVIDED,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UserDocument:
        """Owner edit. Changing a date sends the document back to PENDING."""

        document = self._get_owned(actor, document_id)

        new_issued = document.issued_at if issued_at is _NOT_PROVIDED else issued_at
        new_expires = document.expires_at if expires_at is _NOT_PROVIDED else expires_at
        # The repository may hand back the stored object, so nothing is
        # assigned until the new pair of dates is known to be valid.
        self._check_dates(new_issued, new_expires)

        if (new_issued, new_expires) != (document.issued_at, document.expires_at):
            document.issued_at = new_issued
            document.expires_at = new_expires
            document.status = DocumentStatus.PENDING
        if metadata is not None:
            document.metadata = {**document.metadata, **metadata}

        document.updated_at = datetime.now(timezone.utc)
        repos.document_repository.save(document)
        return document

    def delete(self, actor: User, document_id: UUID) -> None:
        document = self._get_owned(actor, document_id)
        repos.document_repository.delete(document.id)

        if document.request_id is not None:
            request = repos.request_repository.get(document.request_id)
            if request is not None and document.id in request.document_ids:
                request.document_ids.remove(document.id)
                repos.request_repository.save(request)

        file_storage_backend.delete_file(document.file_url)
        audit_service.log_event(
            action="delete_document",
            resource_type="user_document",
            resource_id=str(document.id),
            subject=str(actor.id),
        )

    def validate(
        self,
        actor: User,
        document_id: UUID,
        *,
        status: DocumentStatus,
        notes: Optional[str] = None,
    ) -> UserDocument:
        ensure_has_any_role(actor, REVIEWER_ROLES, "Only staff can validate documents")
        if status not in {DocumentStatus.VALIDATED, DocumentStatus.REJECTED}:
            raise ValidationError("Documents can only be validated or rejected")

        document = repos.document_repository.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)

        now = datetime.now(timezone.utc)
        # Validation replaces any previous metadata.
        metadata: Dict[str, Any] = {"validatedBy": str(actor.id), "validatedAt": now.isoformat()}
        if notes:
            metadata["validationNotes"] = notes
        document.metadata = metadata
        document.status = status
        document.updated_at = now
        repos.document_repository.save(document)

        validated = status == DocumentStatus.VALIDATED
        notification_service.notify(
            user_id=document.user_id,
            type=NotificationType.DOCUMENT_VALIDATED if validated else NotificationType.DOCUMENT_REJECTED,
            title="Document validated" if validated else "Document rejected",
            message=notes or (
                "Your document has been validated." if validated else "Your document has been rejected."
            ),
            channels=(NotificationChannel.APP, NotificationChannel.EMAIL),
            metadata={"document_id": str(document.id), "document_type": document.type.value},
        )
        audit_service.log_event(
            action="validate_document",
            resource_type="user_document",
            resource_id=str(document.id),
            subject=str(actor.id),
            extra={"status": status.value},
        )
        return document

    def _get_owned(self, actor: User, document_id: UUID) -> UserDocument:
        document = repos.document_repository.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        if document.user_id != actor.id:
            raise AuthorizationError("Only the owner can change this document")
        return document

    @staticmethod
    def _check_dates(issued_at: Optional[date], expires_at: Optional[date]) -> None:
        if issued_at is not None and expires_at is not None and expires_at <= issued_at:
            raise ValidationError("Expiry date must be after the issue date")


document_service = DocumentService()
