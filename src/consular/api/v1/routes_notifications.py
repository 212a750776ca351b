from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.consular.domain.models.notification import Notification
from src.consular.domain.models.user import User
from src.consular.security import get_current_user
from src.consular.services.notifications.service import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int


@router.get("/", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
) -> List[Notification]:
    return notification_service.list_for_user(current_user.id, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: User = Depends(get_current_user)) -> UnreadCountResponse:
    return UnreadCountResponse(count=notification_service.unread_count(current_user.id))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(current_user: User = Depends(get_current_user)) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=notification_service.mark_all_as_read(current_user.id))


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(notification_id: UUID, current_user: User = Depends(get_current_user)) -> Notification:
    return notification_service.mark_as_read(notification_id, user_id=current_user.id)
