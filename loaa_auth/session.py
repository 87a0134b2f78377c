"""
Browser session collaborator used by /oauth/authorize and the login surface.
Handlers only see the BrowserSession protocol; the concrete store is Starlette's
signed-cookie SessionMiddleware, and tests can override get_browser_session.
"""
import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Protocol
from urllib.parse import urlencode

from fastapi import Request

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"
SESSION_ACCOUNT_TYPE_KEY = "account_type"
_PENDING_PREFIX = "oauth_"


class SessionError(Exception):
    """The session store could not be read or written."""


class BrowserSession(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def delete(self) -> None: ...


class StarletteSession:
    """BrowserSession over request.session (requires SessionMiddleware)."""

    def __init__(self, request: Request):
        self._request = request

    def _data(self) -> dict:
        try:
            return self._request.session
        except AssertionError as e:
            # Starlette asserts when SessionMiddleware is not installed
            raise SessionError(str(e)) from e

    async def get(self, key: str) -> Any | None:
        return self._data().get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data()[key] = value

    async def remove(self, key: str) -> None:
        self._data().pop(key, None)

    async def delete(self) -> None:
        self._data().clear()


def get_browser_session(request: Request) -> BrowserSession:
    """Dependency: the caller's browser session."""
    return StarletteSession(request)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Parameters of an /oauth/authorize call parked while the user logs in."""

    client_id: str
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str

    def to_query(self) -> str:
        return urlencode(asdict(self))


_REQUEST_FIELDS = [f.name for f in fields(AuthorizationRequest)]


async def save_pending_request(session: BrowserSession, auth_request: AuthorizationRequest) -> None:
    for name, value in asdict(auth_request).items():
        await session.set(_PENDING_PREFIX + name, value)


async def load_pending_request(session: BrowserSession) -> AuthorizationRequest | None:
    """The parked request, or None if there is none (or it is incomplete)."""
    values = {}
    for name in _REQUEST_FIELDS:
        value = await session.get(_PENDING_PREFIX + name)
        if value is None:
            if values:
                logger.warning("Pending authorization request in session is incomplete (missing %s)", name)
            return None
        values[name] = value
    return AuthorizationRequest(**values)


async def clear_pending_request(session: BrowserSession) -> None:
    for name in _REQUEST_FIELDS:
        await session.remove(_PENDING_PREFIX + name)
