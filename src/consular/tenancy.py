from __future__ import annotations

from contextvars import ContextVar
from typing import Optional
from uuid import UUID

from fastapi import Header


# Organization (consulate/embassy) the in-flight request is scoped to. Staff
# requests set it from the authenticated user's organization; citizens may
# pick a post with the X-Organization-ID header when browsing services.
_current_organization: ContextVar[Optional[UUID]] = ContextVar("current_organization", default=None)


def get_current_organization() -> Optional[UUID]:
    """Return the organization bound to the current request, if any.

    Outside HTTP requests (e.g. direct service calls in tests) this is None,
    meaning "no tenant filter".
    """

    return _current_organization.get()


def set_current_organization(organization_id: Optional[UUID]) -> None:
    _current_organization.set(organization_id)


async def organization_dependency(
    x_organization_id: Optional[UUID] = Header(None, alias="X-Organization-ID"),
) -> Optional[UUID]:
    """FastAPI dependency that establishes the organization context for a request.

    The header is optional. It runs before the security dependencies, which
    override the value with the organization of an authenticated staff user.
    """

    _current_organization.set(x_organization_id)
    return x_organization_id
