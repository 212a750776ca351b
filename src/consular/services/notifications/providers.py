from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from src.consular.config import settings
from src.consular.domain.models.notification import ChannelResult, Notification, NotificationChannel

logger = logging.getLogger("notifications")


@dataclass
class Recipient:
    email: Optional[str] = None
    phone_number: Optional[str] = None
    name: Optional[str] = None


class NotificationProvider(ABC):
    """Delivers a notification over one external channel."""

    channel: NotificationChannel

    @abstractmethod
    def send(self, notification: Notification, recipient: Recipient) -> ChannelResult:
        raise NotImplementedError


def _link_for(notification: Notification) -> str:
    """Front-end page a notification points at, for the email footer."""

    request_id = notification.metadata.get("request_id")
    if request_id:
        return f"{settings.app_url}/my-space/requests/{request_id}"
    return f"{settings.app_url}/my-space"


class EmailProvider(NotificationProvider):
    """Sends email through the Resend HTTP API."""

    channel = NotificationChannel.EMAIL

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(timeout=settings.provider_timeout_seconds)

    def send(self, notification: Notification, recipient: Recipient) -> ChannelResult:
        if not recipient.email:
            return ChannelResult(channel=self.channel, success=False, error="Recipient has no email address")

        response = self._client.post(
            settings.email_api_url,
            headers={"Authorization": f"Bearer {settings.email_api_key}"},
            json={
                "from": settings.email_from,
                "to": [recipient.email],
                "subject": notification.title,
                "text": f"{notification.message}\n\n{_link_for(notification)}",
            },
        )
        if response.status_code >= 400:
            logger.error("Email provider returned %s for notification %s", response.status_code, notification.id)
            return ChannelResult(channel=self.channel, success=False, error=f"HTTP {response.status_code}")
        return ChannelResult(channel=self.channel, success=True)


class SmsProvider(NotificationProvider):
    """Sends SMS through the Twilio REST API."""

    channel = NotificationChannel.SMS

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(timeout=settings.provider_timeout_seconds)
        self._base_url = f"https://api.twilio.com/2010-04-01/Accounts/{settings.twilio_account_sid}"

    def send(self, notification: Notification, recipient: Recipient) -> ChannelResult:
        if not recipient.phone_number:
            return ChannelResult(channel=self.channel, success=False, error="Recipient has no phone number")

        response = self._client.post(
            f"{self._base_url}/Messages.json",
            data={
                "From": settings.twilio_from_number,
                "To": recipient.phone_number,
                "Body": f"{notification.title}\n{notification.message}",
            },
            auth=(settings.twilio_account_sid or "", settings.twilio_auth_token or ""),
        )
        if response.status_code not in (200, 201):
            logger.error("SMS provider returned %s for notification %s", response.status_code, notification.id)
            return ChannelResult(channel=self.channel, success=False, error=f"HTTP {response.status_code}")
        return ChannelResult(channel=self.channel, success=True)


class LoggingProvider(NotificationProvider):
    """Stand-in used when a channel's credentials are not configured."""

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel

    def send(self, notification: Notification, recipient: Recipient) -> ChannelResult:
        logger.info(
            "[%s] would send notification %s (%s) to user %s",
            self.channel.value,
            notification.id,
            notification.type.value,
            notification.user_id,
        )
        return ChannelResult(channel=self.channel, success=True)


def build_providers() -> Dict[NotificationChannel, NotificationProvider]:
    """Select a provider per external channel based on configured credentials."""

    providers: Dict[NotificationChannel, NotificationProvider] = {}
    if settings.email_api_key:
        providers[NotificationChannel.EMAIL] = EmailProvider()
    else:
        providers[NotificationChannel.EMAIL] = LoggingProvider(NotificationChannel.EMAIL)

    if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number:
        providers[NotificationChannel.SMS] = SmsProvider()
    else:
        providers[NotificationChannel.SMS] = LoggingProvider(NotificationChannel.SMS)
    return providers
