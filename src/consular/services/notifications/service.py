from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from src.consular.domain.models.notification import (
    ChannelResult,
    Notification,
    NotificationChannel,
    NotificationResponse,
    NotificationType,
)
from src.consular.errors import ConflictError, NotFoundError
from src.consular.infra.db import inmemory as repos
from src.consular.services.notifications.providers import NotificationProvider, Recipient, build_providers

logger = logging.getLogger("notifications")


class NotificationService:
    """Creates in-app notifications and fans them out to email/SMS.

    ``notify`` is best effort: every failure is logged and swallowed so a
    notification problem never fails the mutation that triggered it. There
    is no retry queue.
    """

    def __init__(self, providers: Optional[Dict[NotificationChannel, NotificationProvider]] = None) -> None:
        self._providers = providers

    @property
    def providers(self) -> Dict[NotificationChannel, NotificationProvider]:
        if self._providers is None:
            self._providers = build_providers()
        return self._providers

    def set_providers(self, providers: Optional[Dict[NotificationChannel, NotificationProvider]]) -> None:
        self._providers = providers

    def notify(
        self,
        *,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        channels: Sequence[NotificationChannel] = (NotificationChannel.APP,),
        metadata: Optional[Dict[str, Any]] = None,
    ) -> NotificationResponse:
        response = NotificationResponse()
        notification = Notification(
            id=uuid4(),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            channels=list(channels),
            metadata=metadata or {},
            created_at=datetime.now(timezone.utc),
        )

        if NotificationChannel.APP in channels:
            try:
                repos.notification_repository.save(notification)
                response.notification_id = notification.id
                response.results.append(ChannelResult(channel=NotificationChannel.APP, success=True))
            except Exception as exc:
                logger.exception("Failed to store notification %s for user %s", type.value, user_id)
                response.results.append(ChannelResult(channel=NotificationChannel.APP, success=False, error=str(exc)))

        external = [channel for channel in channels if channel != NotificationChannel.APP]
        if external:
            recipient = self._resolve_recipient(user_id)
            for channel in external:
                response.results.append(self._send(channel, notification, recipient))

        return response

    def _resolve_recipient(self, user_id: UUID) -> Recipient:
        try:
            user = repos.user_repository.get(user_id)
        except Exception:
            logger.exception("Failed to load recipient %s", user_id)
            return Recipient()
        if user is None:
            return Recipient()
        return Recipient(email=str(user.email), phone_number=user.phone_number, name=user.name)

    def _send(self, channel: NotificationChannel, notification: Notification, recipient: Recipient) -> ChannelResult:
        try:
            provider = self.providers.get(channel)
            if provider is None:
                return ChannelResult(channel=channel, success=False, error="No provider configured")
            return provider.send(notification, recipient)
        except Exception as exc:
            logger.exception("Error sending notification %s via %s", notification.id, channel.value)
            return ChannelResult(channel=channel, success=False, error=str(exc))

    # Queries and read state

    def list_for_user(self, user_id: UUID, *, unread_only: bool = False) -> List[Notification]:
        return list(repos.notification_repository.list_for_user(user_id, unread_only=unread_only))

    def unread_count(self, user_id: UUID) -> int:
        return len(self.list_for_user(user_id, unread_only=True))

    def mark_as_read(self, notification_id: UUID, *, user_id: UUID) -> Notification:
        notification = repos.notification_repository.get(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        if notification.is_read:
            raise ConflictError("Notification already read")
        notification.read_at = datetime.now(timezone.utc)
        repos.notification_repository.save(notification)
        return notification

    def mark_all_as_read(self, user_id: UUID) -> int:
        now = datetime.now(timezone.utc)
        unread = self.list_for_user(user_id, unread_only=True)
        for notification in unread:
            notification.read_at = now
            repos.notification_repository.save(notification)
        return len(unread)


notification_service = NotificationService()
