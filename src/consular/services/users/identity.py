from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, Optional
from uuid import UUID


class IdentityProvider(ABC):
    """Session lookup contract with the external identity provider.

    The application only needs to turn a bearer session token into a user
    id; token issuance, refresh and expiry belong to the provider.
    """

    @abstractmethod
    def resolve_session(self, token: str) -> Optional[UUID]:
        raise NotImplementedError

    @abstractmethod
    def issue_session(self, user_id: UUID) -> str:
        raise NotImplementedError

    @abstractmethod
    def revoke_session(self, token: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def revoke_user_sessions(self, user_id: UUID) -> int:
        raise NotImplementedError


class InMemoryIdentityProvider(IdentityProvider):
    """Opaque random tokens held in process memory."""

    def __init__(self) -> None:
        self._sessions: Dict[str, UUID] = {}
        self._lock = Lock()

    def resolve_session(self, token: str) -> Optional[UUID]:
        return self._sessions.get(token)

    def issue_session(self, user_id: UUID) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user_id
        return token

    def revoke_session(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def revoke_user_sessions(self, user_id: UUID) -> int:
        with self._lock:
            tokens = [token for token, owner in self._sessions.items() if owner == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)


identity_provider: IdentityProvider = InMemoryIdentityProvider()
