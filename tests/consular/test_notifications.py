from uuid import uuid4

import httpx
import pytest

from src.consular.domain.models.notification import ChannelResult, NotificationChannel, NotificationType
from src.consular.domain.models.service_request import RequestStatus
from src.consular.domain.models.user import UserRole
from src.consular.errors import ConflictError, NotFoundError
from src.consular.infra.db import inmemory as repos
from src.consular.services.notifications.providers import EmailProvider, NotificationProvider, Recipient, SmsProvider
from src.consular.services.notifications.service import notification_service
from src.consular.services.requests.service import request_service


class _ExplodingProvider(NotificationProvider):
    channel = NotificationChannel.EMAIL

    def send(self, notification, recipient):
        raise RuntimeError("provider down")


class _RecordingProvider(NotificationProvider):
    def __init__(self, channel):
        self.channel = channel
        self.sent = []

    def send(self, notification, recipient):
        self.sent.append((notification, recipient))
        return ChannelResult(channel=self.channel, success=True)


def _notify(user_id, **kwargs):
    return notification_service.notify(
        user_id=user_id,
        type=kwargs.pop("type", NotificationType.FEEDBACK),
        title="Title",
        message="Message",
        **kwargs,
    )


def test_notify_stores_in_app_notification(make_user):
    user = make_user()

    response = _notify(user.id)

    assert response.successful
    assert response.notification_id is not None
    assert notification_service.unread_count(user.id) == 1


def test_notify_never_raises_when_insert_fails(make_user, monkeypatch):
    user = make_user()

    def _broken_save(notification):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(repos.notification_repository, "save", _broken_save)

    response = _notify(user.id)

    assert not response.successful
    assert response.notification_id is None
    assert response.results[0].error == "insert failed"


def test_mutation_survives_notification_failure(make_user, make_profile, make_service, organization, monkeypatch):
    citizen = make_user()
    make_profile(citizen)
    service = make_service(organization)
    request = request_service.create(citizen, service_id=service.id)

    def _broken_save(notification):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(repos.notification_repository, "save", _broken_save)
    notification_service.set_providers({NotificationChannel.EMAIL: _ExplodingProvider()})

    submitted = request_service.submit(citizen, request.id)

    assert submitted.status == RequestStatus.SUBMITTED
    assert repos.request_repository.get(request.id).status == RequestStatus.SUBMITTED


def test_provider_failure_is_reported_per_channel(make_user):
    user = make_user(phone_number="+33600000000")
    sms = _RecordingProvider(NotificationChannel.SMS)
    notification_service.set_providers({NotificationChannel.EMAIL: _ExplodingProvider(), NotificationChannel.SMS: sms})

    response = _notify(
        user.id,
        channels=(NotificationChannel.APP, NotificationChannel.EMAIL, NotificationChannel.SMS),
    )

    by_channel = {result.channel: result for result in response.results}
    assert by_channel[NotificationChannel.APP].success
    assert not by_channel[NotificationChannel.EMAIL].success
    assert by_channel[NotificationChannel.SMS].success
    assert sms.sent[0][1].phone_number == "+33600000000"


def test_missing_provider_is_a_failed_channel(make_user):
    notification_service.set_providers({})
    response = _notify(make_user().id, channels=(NotificationChannel.SMS,))
    assert response.results == [
        ChannelResult(channel=NotificationChannel.SMS, success=False, error="No provider configured")
    ]


def test_mark_as_read_and_read_twice(make_user):
    user = make_user()
    notification_id = _notify(user.id).notification_id

    read = notification_service.mark_as_read(notification_id, user_id=user.id)
    assert read.is_read
    assert notification_service.unread_count(user.id) == 0

    with pytest.raises(ConflictError):
        notification_service.mark_as_read(notification_id, user_id=user.id)


def test_cannot_read_someone_elses_notification(make_user):
    owner = make_user()
    notification_id = _notify(owner.id).notification_id
    with pytest.raises(NotFoundError):
        notification_service.mark_as_read(notification_id, user_id=make_user().id)
    with pytest.raises(NotFoundError):
        notification_service.mark_as_read(uuid4(), user_id=owner.id)


def test_mark_all_as_read(make_user):
    user = make_user()
    for _ in range(3):
        _notify(user.id)

    assert notification_service.mark_all_as_read(user.id) == 3
    assert notification_service.unread_count(user.id) == 0
    assert len(notification_service.list_for_user(user.id)) == 3
    assert notification_service.mark_all_as_read(user.id) == 0


def _notification(make_user):
    user = make_user()
    response = _notify(user.id)
    return repos.notification_repository.get(response.notification_id)


def test_email_provider_posts_to_email_api(make_user):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    provider = EmailProvider(client=httpx.Client(transport=httpx.MockTransport(handler)))
    result = provider.send(_notification(make_user), Recipient(email="citizen@example.com"))

    assert result.success
    assert seen[0].method == "POST"
    assert b"citizen@example.com" in seen[0].content
    assert b"/my-space" in seen[0].content


def test_email_provider_reports_http_errors(make_user):
    provider = EmailProvider(
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    )
    result = provider.send(_notification(make_user), Recipient(email="citizen@example.com"))
    assert not result.success
    assert result.error == "HTTP 500"


def test_sms_provider_needs_phone_number(make_user):
    provider = SmsProvider(
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(201)))
    )
    notification = _notification(make_user)

    assert not provider.send(notification, Recipient()).success
    assert provider.send(notification, Recipient(phone_number="+33600000000")).success


def test_staff_assignment_notifies_agent(make_user, make_profile, make_service, organization):
    citizen = make_user()
    make_profile(citizen)
    manager = make_user([UserRole.MANAGER], organization_id=organization.id)
    agent = make_user([UserRole.AGENT], organization_id=organization.id)
    request = request_service.create(citizen, service_id=make_service(organization).id)
    request_service.submit(citizen, request.id)

    request_service.assign(manager, request.id, agent.id)

    assert notification_service.unread_count(agent.id) == 1
