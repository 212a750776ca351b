from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from src.consular.config import settings
from src.consular.domain.models.user import User, UserRole
from src.consular.infra.db import inmemory as repos
from src.consular.security import require_roles
from src.consular.services.audit.service import audit_service

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/info")
async def system_info_v1() -> dict:
    """Which optional backends this process runs with (no secrets)."""

    return {
        "environment": settings.environment,
        "repositories": type(repos.request_repository).__name__,
        "profile_mirror": "mongodb" if settings.mongodb_url else "disabled",
        "email": "resend" if settings.email_api_key else "log",
        "sms": "twilio" if settings.twilio_account_sid and settings.twilio_auth_token else "log",
    }


@router.get("/system/audit")
async def recent_audit_events(
    resource_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN)),
) -> List[dict]:
    events = audit_service.recent_events(resource_id=resource_id)[:limit]
    return [asdict(event) for event in events]
