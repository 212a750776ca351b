from datetime import datetime, timezone
from uuid import uuid4

from src.consular.access import (
    DASHBOARD_ROUTE,
    LOGIN_ROUTE,
    USER_SPACE_ROUTE,
    AccessOutcome,
    build_login_url,
    evaluate_access,
    has_any_role,
    home_route_for,
    is_safe_callback_url,
)
from src.consular.domain.models.user import User, UserRole, UserStatus


def _user(*roles: UserRole, status: UserStatus = UserStatus.ACTIVE) -> User:
    return User(
        id=uuid4(),
        email="someone@example.com",
        roles=list(roles),
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def test_has_any_role_intersection():
    agent = _user(UserRole.AGENT)
    assert has_any_role(agent, [UserRole.AGENT, UserRole.ADMIN])
    assert not has_any_role(agent, [UserRole.ADMIN])


def test_empty_requirement_admits_authenticated_users_only():
    assert has_any_role(_user(UserRole.USER), [])
    assert not has_any_role(None, [])


def test_anonymous_user_is_redirected_to_login_with_callback():
    decision = evaluate_access(None, [UserRole.USER], callback_url="/my-space/requests")
    assert decision.outcome == AccessOutcome.REDIRECT
    assert decision.redirect_url == f"{LOGIN_ROUTE}?callbackUrl=%2Fmy-space%2Frequests"


def test_unsafe_callback_is_dropped():
    decision = evaluate_access(None, [UserRole.USER], callback_url="https://evil.example.com")
    assert decision.redirect_url == LOGIN_ROUTE


def test_deleted_user_is_treated_as_anonymous():
    decision = evaluate_access(_user(UserRole.ADMIN, status=UserStatus.DELETED), [UserRole.ADMIN])
    assert decision.outcome == AccessOutcome.REDIRECT
    assert decision.redirect_url == LOGIN_ROUTE


def test_missing_role_renders_fallback_without_redirect_target():
    decision = evaluate_access(_user(UserRole.USER), [UserRole.ADMIN])
    assert decision.outcome == AccessOutcome.FALLBACK
    assert not decision.allowed
    assert decision.redirect_url is None


def test_missing_role_redirects_to_fallback_url_when_given():
    decision = evaluate_access(_user(UserRole.USER), [UserRole.ADMIN], fallback_url=USER_SPACE_ROUTE)
    assert decision.outcome == AccessOutcome.REDIRECT
    assert decision.redirect_url == USER_SPACE_ROUTE


def test_matching_role_is_allowed():
    decision = evaluate_access(_user(UserRole.MANAGER), [UserRole.AGENT, UserRole.MANAGER])
    assert decision.allowed


def test_callback_url_safety():
    assert is_safe_callback_url("/dashboard")
    assert is_safe_callback_url("/my-space?tab=documents")
    assert not is_safe_callback_url("//evil.example.com")
    assert not is_safe_callback_url("https://evil.example.com")
    assert not is_safe_callback_url("/redirect?to=javascript:alert(1)")
    assert not is_safe_callback_url("/\\evil.example.com")
    assert not is_safe_callback_url("")
    assert not is_safe_callback_url(None)


def test_build_login_url_without_callback():
    assert build_login_url() == LOGIN_ROUTE


def test_home_route_for_roles():
    assert home_route_for(None) == LOGIN_ROUTE
    assert home_route_for(_user(UserRole.USER)) == USER_SPACE_ROUTE
    assert home_route_for(_user(UserRole.AGENT)) == DASHBOARD_ROUTE
    assert home_route_for(_user(UserRole.USER, UserRole.SUPER_ADMIN)) == DASHBOARD_ROUTE
    assert home_route_for(_user(UserRole.INTEL_AGENT)) == "/"
