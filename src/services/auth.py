"""
Session resolution contract.

The scan endpoint never parses cookies itself: it asks a resolver to turn a
session token plus the tenant from the request into an AuthContext.
"""

from abc import ABC, abstractmethod
from datetime import datetime, UTC
from pydantic import BaseModel


class AuthContext(BaseModel):
    tenant_id: str
    user_id: str


class SessionResolverBase(ABC):
    @abstractmethod
    def resolve(self, session_token: str | None, tenant: str | None) -> AuthContext | None:
        """Return the acting user/tenant, or None when the request is not authorised"""
        pass


class InMemorySessionResolver(SessionResolverBase):
    """
    Sessions and tenant access held in dictionaries (for demo purposes).
    In production, back this with the sessions / user_tenant_access tables.
    """

    def __init__(self):
        self._sessions: dict[str, dict] = {}
        self._tenant_access: dict[str, set[str]] = {}

    def add_session(self, token: str, user_id: str, expires_at: datetime) -> None:
        self._sessions[token] = {"user_id": user_id, "expires_at": expires_at}

    def grant(self, user_id: str, tenant: str) -> None:
        self._tenant_access.setdefault(user_id, set()).add(tenant)

    def resolve(self, session_token: str | None, tenant: str | None) -> AuthContext | None:
        if not session_token or not tenant:
            return None

        session = self._sessions.get(session_token)
        if session is None or session["expires_at"] < datetime.now(UTC):
            return None

        user_id = session["user_id"]
        if tenant not in self._tenant_access.get(user_id, set()):
            return None

        return AuthContext(tenant_id=tenant, user_id=user_id)


session_resolver = InMemorySessionResolver()
