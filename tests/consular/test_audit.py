import json
import logging

from src.consular.domain.models.user import UserRole
from src.consular.services.audit.service import audit_service
from src.consular.services.requests.service import request_service
from src.consular.tenancy import set_current_organization


def test_events_are_json_lines_on_the_audit_logger(caplog):
    with caplog.at_level(logging.INFO, logger="audit"):
        audit_service.log_event(
            action="validate_document",
            resource_type="user_document",
            resource_id="doc-1",
            subject="user-1",
            extra={"status": "VALIDATED"},
        )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["action"] == "validate_document"
    assert payload["subject"] == "user-1"
    assert payload["details"] == {"status": "VALIDATED"}


def test_organization_comes_from_the_tenancy_context(organization):
    set_current_organization(organization.id)
    event = audit_service.log_event(action="create_service", resource_type="consular_service")
    assert event.organization_id == str(organization.id)


def test_non_json_details_are_stringified(organization):
    event = audit_service.log_event(
        action="assign_request", resource_type="service_request", extra={"agent_id": organization.id}
    )
    assert json.loads(event.to_json())["details"]["agent_id"] == str(organization.id)


def test_workflow_actions_are_audited(make_user, make_profile, make_service, organization):
    citizen = make_user()
    make_profile(citizen)
    request = request_service.create(citizen, service_id=make_service(organization).id)
    request_service.submit(citizen, request.id)

    events = audit_service.recent_events(resource_id=str(request.id))

    assert events[-1].action == "create_request"
    assert events[-1].subject == str(citizen.id)
    assert len(events) >= 2


async def test_recent_events_endpoint_is_super_admin_only(client, make_user, auth_headers, organization):
    audit_service.log_event(action="create_organization", resource_type="organization", resource_id="org-1")

    admin = make_user([UserRole.ADMIN], organization_id=organization.id)
    denied = await client.get("/api/v1/system/audit", headers=auth_headers(admin))
    assert denied.status_code == 403

    allowed = await client.get(
        "/api/v1/system/audit",
        params={"resource_id": "org-1"},
        headers=auth_headers(make_user([UserRole.SUPER_ADMIN])),
    )
    assert allowed.status_code == 200
    assert [event["action"] for event in allowed.json()] == ["create_organization"]
