from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from src.consular.access import DASHBOARD_ROUTE, USER_SPACE_ROUTE
from src.consular.domain.models.user import STAFF_ROLES, User, UserRole
from src.consular.infra.db import inmemory as repos
from src.consular.security import get_current_user_optional, guarded_view
from src.consular.services.notifications.service import notification_service
from src.consular.services.requests.service import RequestQuery, request_service

# Page entry points of the web front-end. Mounted at the root, not under /api/v1.
router = APIRouter(tags=["pages"])


def _callback_for(request: Request) -> str:
    path = request.url.path
    return f"{path}?{request.url.query}" if request.url.query else path


def _dashboard_payload(user: User) -> Dict[str, Any]:
    stats = request_service.stats(user)
    return {
        "user": {"id": str(user.id), "name": user.name, "roles": [role.value for role in user.roles]},
        "stats": {
            "total": stats.total,
            "by_status": stats.by_status,
            "completed_today": stats.completed_today,
            "pending_urgent": stats.pending_urgent,
        },
    }


def _user_space_payload(user: User) -> Dict[str, Any]:
    profile = repos.profile_repository.get_by_user(user.id)
    recent = request_service.list(user, RequestQuery(limit=5))
    return {
        "user": {"id": str(user.id), "name": user.name},
        "profile_status": profile.status.value if profile else None,
        "recent_requests": [
            {"id": str(item.id), "status": item.status.value, "category": item.service_category.value}
            for item in recent.items
        ],
        "unread_notifications": notification_service.unread_count(user.id),
    }


@router.get(DASHBOARD_ROUTE, response_model=None)
async def dashboard(request: Request, user: Optional[User] = Depends(get_current_user_optional)):
    """Staff back-office landing page. Citizens are sent to their own space."""

    return guarded_view(
        user,
        STAFF_ROLES,
        callback_url=_callback_for(request),
        fallback_url=USER_SPACE_ROUTE,
        render=_dashboard_payload,
    )


@router.get(USER_SPACE_ROUTE, response_model=None)
async def user_space(request: Request, user: Optional[User] = Depends(get_current_user_optional)):
    return guarded_view(
        user,
        {UserRole.USER},
        callback_url=_callback_for(request),
        render=_user_space_payload,
    )
