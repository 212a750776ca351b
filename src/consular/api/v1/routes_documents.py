from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel

from src.consular.domain.models.user import REVIEWER_ROLES, User
from src.consular.domain.models.user_document import DocumentStatus, DocumentType, UserDocument
from src.consular.security import get_current_user, require_roles
from src.consular.services.documents.service import document_service

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentUpdateRequest(BaseModel):
    issued_at: Optional[date] = None
    expires_at: Optional[date] = None
    metadata: Optional[Dict[str, Any]] = None


class DocumentValidationRequest(BaseModel):
    status: DocumentStatus
    notes: Optional[str] = None


@router.post("/", response_model=UserDocument, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    type: DocumentType = Form(...),
    profile_id: Optional[UUID] = Form(None),
    request_id: Optional[UUID] = Form(None),
    issued_at: Optional[date] = Form(None),
    expires_at: Optional[date] = Form(None),
    current_user: User = Depends(get_current_user),
) -> UserDocument:
    """Store an uploaded file and create a PENDING document for it."""

    content = await file.read()
    return document_service.upload(
        current_user,
        content=content,
        content_type=file.content_type or "application/octet-stream",
        type=type,
        profile_id=profile_id,
        request_id=request_id,
        issued_at=issued_at,
        expires_at=expires_at,
    )


@router.get("/", response_model=List[UserDocument])
async def list_documents(
    user_id: Optional[UUID] = Query(None),
    request_id: Optional[UUID] = Query(None),
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[UserDocument]:
    return document_service.list_documents(
        current_user,
        user_id=user_id,
        request_id=request_id,
        status=status_filter,
    )


@router.get("/{document_id}", response_model=UserDocument)
async def get_document(document_id: UUID, current_user: User = Depends(get_current_user)) -> UserDocument:
    return document_service.get_document(current_user, document_id)


@router.patch("/{document_id}", response_model=UserDocument)
async def update_document(
    document_id: UUID,
    payload: DocumentUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> UserDocument:
    """Changing either date sends the document back to PENDING."""

    changes = {key: getattr(payload, key) for key in payload.model_fields_set}
    return document_service.update(current_user, document_id, **changes)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: UUID, current_user: User = Depends(get_current_user)) -> None:
    document_service.delete(current_user, document_id)


@router.post("/{document_id}/validate", response_model=UserDocument)
async def validate_document(
    document_id: UUID,
    payload: DocumentValidationRequest,
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> UserDocument:
    return document_service.validate(current_user, document_id, status=payload.status, notes=payload.notes)
