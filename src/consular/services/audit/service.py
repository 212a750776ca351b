from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from src.consular.tenancy import get_current_organization

logger = logging.getLogger("audit")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEvent:
    """One security-relevant action on a consular record.

    Only identifiers and statuses go in here. Names, addresses and document
    contents stay out of the audit trail.
    """

    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    organization_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_timestamp)

    def to_json(self) -> str:
        # default=str covers UUIDs, enums and dates passed in details.
        return json.dumps(asdict(self), default=str, sort_keys=True)


class AuditService:
    """Writes audit events as JSON lines to the ``audit`` logger.

    The last few events are also kept in memory for the system endpoints and
    tests; the log stream is the durable record.
    """

    def __init__(self, history_size: int = 200) -> None:
        self._recent: Deque[AuditEvent] = deque(maxlen=history_size)

    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Record ``action`` on a resource, e.g. ("submit_request", "service_request").

        ``subject`` defaults to the user of the in-flight request and the
        organization is always taken from the tenancy context.
        """

        if subject is None:
            # Imported lazily: security imports services that log audit events.
            from src.consular.security import get_current_subject

            subject = get_current_subject()

        organization_id = get_current_organization()
        event = AuditEvent(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            organization_id=str(organization_id) if organization_id else None,
            details=dict(extra or {}),
        )
        self._recent.append(event)
        logger.info(event.to_json())
        return event

    def recent_events(self, *, resource_id: Optional[str] = None) -> List[AuditEvent]:
        """Newest first, optionally narrowed to one resource."""

        events = reversed(self._recent)
        if resource_id is None:
            return list(events)
        return [event for event in events if event.resource_id == resource_id]

    def clear(self) -> None:
        self._recent.clear()


audit_service = AuditService()
