from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlencode

from src.consular.domain.models.user import STAFF_ROLES, User, UserRole

LOGIN_ROUTE = "/auth/login"
DASHBOARD_ROUTE = "/dashboard"
USER_SPACE_ROUTE = "/my-space"
BASE_ROUTE = "/"


class AccessOutcome(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    # Render a fallback node in place of the guarded content.
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    redirect_url: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == AccessOutcome.ALLOW


def has_any_role(user: Optional[User], roles: Iterable[UserRole]) -> bool:
    """Return True when ``user`` holds at least one of ``roles``.

    An empty role requirement admits any authenticated user.
    """

    if user is None:
        return False
    required = set(roles)
    if not required:
        return True
    return bool(required.intersection(user.roles))


def is_safe_callback_url(url: Optional[str]) -> bool:
    """Only same-site relative paths may be used as post-login callbacks."""

    if not url:
        return False
    lowered = url.lower()
    return (
        url.startswith("/")
        and not url.startswith("//")
        and "\\" not in url
        and "javascript:" not in lowered
        and "data:" not in lowered
    )


def build_login_url(callback_url: Optional[str] = None) -> str:
    if callback_url and is_safe_callback_url(callback_url):
        return f"{LOGIN_ROUTE}?{urlencode({'callbackUrl': callback_url})}"
    return LOGIN_ROUTE


def home_route_for(user: Optional[User]) -> str:
    """Landing route for a user: staff go to the dashboard, citizens to their space."""

    if user is None:
        return LOGIN_ROUTE
    if has_any_role(user, STAFF_ROLES):
        return DASHBOARD_ROUTE
    if user.has_role(UserRole.USER):
        return USER_SPACE_ROUTE
    return BASE_ROUTE


def evaluate_access(
    user: Optional[User],
    required_roles: Iterable[UserRole],
    *,
    callback_url: Optional[str] = None,
    fallback_url: Optional[str] = None,
) -> AccessDecision:
    """Decide what a guarded view shows for ``user``.

    - No session: redirect to login, keeping ``callback_url`` when it is safe.
    - Session without any required role: redirect to ``fallback_url`` if one
      is provided, otherwise render the fallback.
    - Otherwise the content is allowed.
    """

    if user is None or not user.is_active:
        return AccessDecision(AccessOutcome.REDIRECT, build_login_url(callback_url))

    if not has_any_role(user, required_roles):
        if fallback_url:
            return AccessDecision(AccessOutcome.REDIRECT, fallback_url)
        return AccessDecision(AccessOutcome.FALLBACK)

    return AccessDecision(AccessOutcome.ALLOW)
