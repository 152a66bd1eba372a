"""
Session state for the portal.

The store is written by login/logout flows; every other component reads it
through a SessionContext and must re-read after each await, since the user
can log out while a request is in flight.
"""
import logging
from typing import Mapping, MutableMapping
from .models import Role, Session

logger = logging.getLogger(__name__)

ROLE_KEY = "userRole"
TOKEN_KEY = "token"


class SessionStore:
    """Mutable role/token pair, shaped after a browser key/value store."""

    def __init__(self, role: Role = Role.UNAUTHENTICATED, token: str | None = None):
        self._role = role
        self._token = token

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> "SessionStore":
        return cls(Role.parse(data.get(ROLE_KEY)), data.get(TOKEN_KEY))

    def to_mapping(self, target: MutableMapping[str, str] | None = None) -> MutableMapping[str, str]:
        """Write the session into a key/value store, removing keys that are unset."""
        target = {} if target is None else target
        if self._role is Role.UNAUTHENTICATED:
            target.pop(ROLE_KEY, None)
        else:
            target[ROLE_KEY] = self._role.value
        if self._token:
            target[TOKEN_KEY] = self._token
        else:
            target.pop(TOKEN_KEY, None)
        return target

    def set_role(self, role: Role):
        self._role = role

    def set_token(self, token: str | None):
        self._token = token

    def login(self, role: Role, token: str):
        logger.info("session login as %s", role.value)
        self._role = role
        self._token = token

    def logout(self):
        logger.info("session logout")
        self._role = Role.UNAUTHENTICATED
        self._token = None

    @property
    def role(self) -> Role:
        return self._role

    @property
    def token(self) -> str | None:
        return self._token


class SessionContext:
    """Read-only view over a SessionStore."""

    def __init__(self, store: SessionStore):
        self._store = store

    def current_role(self) -> Role:
        role = self._store.role
        return role if isinstance(role, Role) else Role.UNAUTHENTICATED

    def current_token(self) -> str | None:
        token = self._store.token
        if token is None or not token.strip():
            return None
        return token

    def snapshot(self) -> Session:
        return Session(role=self.current_role(), token=self.current_token())
