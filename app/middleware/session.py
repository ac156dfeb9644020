# =============================================================================
# app/middleware/session.py - Server-Side Sessions
# =============================================================================
# The session cookie carries only a signed session id; session data lives in
# a SessionStore on the server.
#
# Saving rules:
# - A new session is not stored, and no cookie is sent, until a handler
#   writes data to it.
# - An existing session that the handler did not modify is not written back.
# - A session the handler emptied is destroyed and its cookie cleared.
#
# Inside a handler:
#   request.session["views"] = request.session.get("views", 0) + 1
#   request.state.session_id
# =============================================================================

import json
import logging
import secrets
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.middleware.cookies import sign_cookie_value, unsign_cookie_value
from lib.session_store import MemoryStore, SessionStore

logger = logging.getLogger(__name__)


def _serialize(data: dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class SessionMiddleware:
    """Attach a server-side session to every request."""

    def __init__(
        self,
        app: ASGIApp,
        secret: str,
        cookie_name: str = "sid",
        store: SessionStore | None = None,
        max_age: int | None = None,
        path: str = "/",
        same_site: str = "lax",
        https_only: bool = False,
    ) -> None:
        self.app = app
        self.secret = secret
        self.cookie_name = cookie_name
        self.store = store if store is not None else MemoryStore()
        self.max_age = max_age
        self.path = path
        self.security_flags = "httponly; samesite=" + same_site
        if https_only:
            self.security_flags += "; secure"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        connection = HTTPConnection(scope)
        session_id = None
        initial = None

        cookie = connection.cookies.get(self.cookie_name)
        if cookie:
            session_id = unsign_cookie_value(cookie, self.secret)
            if session_id is None:
                logger.debug("Ignoring session cookie with an invalid signature")
            else:
                initial = await self.store.get(session_id)

        is_new = initial is None
        if is_new:
            session_id = secrets.token_urlsafe(24)
            scope["session"] = {}
            initial = _serialize({})
        else:
            scope["session"] = json.loads(initial)
            initial = _serialize(scope["session"])

        scope.setdefault("state", {})["session_id"] = session_id

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                await self._commit(scope, message, session_id, initial, is_new)
            await send(message)

        await self.app(scope, receive, send_wrapper)

    async def _commit(
        self,
        scope: Scope,
        message: Message,
        session_id: str,
        initial: str,
        is_new: bool,
    ) -> None:
        session = scope["session"]
        current = _serialize(session)
        if current == initial:
            return

        headers = MutableHeaders(scope=message)
        if not session:
            if not is_new:
                await self.store.destroy(session_id)
                headers.append("Set-Cookie", self._clear_cookie_header())
            return

        await self.store.set(session_id, current, max_age=self.max_age)
        headers.append("Set-Cookie", self._cookie_header(session_id))

    def _cookie_header(self, session_id: str) -> str:
        value = sign_cookie_value(session_id, self.secret)
        max_age = f"Max-Age={self.max_age}; " if self.max_age else ""
        return f"{self.cookie_name}={value}; path={self.path}; {max_age}{self.security_flags}"

    def _clear_cookie_header(self) -> str:
        return (
            f"{self.cookie_name}=null; path={self.path}; "
            f"expires=Thu, 01 Jan 1970 00:00:00 GMT; {self.security_flags}"
        )
