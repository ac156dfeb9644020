# =============================================================================
# app/middleware/locals.py - View Locals
# =============================================================================
# Exposes the authenticated user (if an authentication layer put one in the
# scope) to views as ``request.state.locals["user"]`` and logs the session id
# of every request.
# =============================================================================

import logging
from typing import Any

from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


def _current_user(scope: Scope) -> Any:
    user = scope.get("user")
    if user is None or getattr(user, "is_authenticated", True) is False:
        return None
    return user


def _username(user: Any) -> str:
    for attr in ("username", "display_name"):
        name = getattr(user, attr, None)
        if name:
            return name
    if isinstance(user, dict) and user.get("username"):
        return user["username"]
    return str(user)


class LocalsMiddleware:
    """Populate per-request view locals."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        user = _current_user(scope)
        state.setdefault("locals", {})["user"] = user

        if user is not None:
            logger.info(f"{_username(user)} has logged in")
        logger.info(f"Session ID: {state.get('session_id')}")

        await self.app(scope, receive, send)
