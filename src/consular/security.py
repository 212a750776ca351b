from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Callable, Iterable, Optional

from fastapi import Depends, Security, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.consular.access import LOGIN_ROUTE, AccessOutcome, evaluate_access, has_any_role
from src.consular.domain.models.user import User, UserRole
from src.consular.errors import AuthenticationError, AuthorizationError
from src.consular.infra.db import inmemory as repos
from src.consular.services.users.identity import identity_provider
from src.consular.tenancy import set_current_organization

# Session tokens issued by the identity provider travel as bearer tokens.
bearer_scheme = HTTPBearer(auto_error=False)

# Id of the authenticated user for the in-flight request. The audit logger
# reads it so events are attributed without threading the user through
# every call.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier (the user id), if any."""

    return _current_subject.get()


def resolve_session_token(token: Optional[str]) -> Optional[User]:
    """Turn a session token into an active User, or None."""

    if not token:
        return None
    user_id = identity_provider.resolve_session(token)
    if user_id is None:
        return None
    user = repos.user_repository.get(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[User]:
    """FastAPI dependency returning the session user, or None when anonymous.

    Also binds the audit subject and, for staff, the organization context.
    """

    user = resolve_session_token(credentials.credentials if credentials else None)
    if user is None:
        _current_subject.set(None)
        return None

    _current_subject.set(str(user.id))
    if user.organization_id is not None:
        set_current_organization(user.organization_id)
    return user


async def get_current_user(user: Optional[User] = Depends(get_current_user_optional)) -> User:
    if user is None:
        raise AuthenticationError()
    return user


def require_roles(*roles: UserRole) -> Callable[..., object]:
    """Build a dependency that admits only users holding one of ``roles``.

    With no roles given any authenticated user passes.
    """

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if not has_any_role(user, roles):
            raise AuthorizationError()
        return user

    return _dependency


def guarded_view(
    user: Optional[User],
    required_roles: Iterable[UserRole],
    *,
    callback_url: Optional[str],
    render: Callable[[User], Any],
    fallback_url: Optional[str] = None,
) -> Any:
    """Run ``render`` only when ``user`` passes the role gate.

    Anonymous users get a 303 to the login page, users without a required
    role get a 303 to ``fallback_url`` or a data-free 403 fallback body.
    """

    decision = evaluate_access(user, required_roles, callback_url=callback_url, fallback_url=fallback_url)
    if decision.outcome == AccessOutcome.REDIRECT:
        return RedirectResponse(decision.redirect_url or LOGIN_ROUTE, status_code=status.HTTP_303_SEE_OTHER)
    if decision.outcome == AccessOutcome.FALLBACK:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "You do not have access to this page", "fallback": True},
        )
    return render(user)
