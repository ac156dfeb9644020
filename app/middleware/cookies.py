# =============================================================================
# app/middleware/cookies.py - Cookie Parsing and Signing
# =============================================================================
# Splits incoming cookies into plain and signed values. Signed values carry an
# "s:" prefix followed by an itsdangerous signature; ones that fail
# verification are dropped.
#
# Usage:
#   value = sign_cookie_value("42", secret)      # "s:42.<signature>"
#   unsign_cookie_value(value, secret)           # "42"
#   request.state.signed_cookies["remember"]     # inside a handler
# =============================================================================

from itsdangerous import BadSignature, Signer
from starlette.datastructures import Headers
from starlette.requests import cookie_parser
from starlette.types import ASGIApp, Receive, Scope, Send

SIGNED_PREFIX = "s:"


def sign_cookie_value(value: str, secret: str) -> str:
    """Sign a cookie value so tampering can be detected."""
    return SIGNED_PREFIX + Signer(secret, salt="cookie").sign(value).decode("utf-8")


def unsign_cookie_value(value: str, secret: str) -> str | None:
    """Return the original value, or None if it is unsigned or tampered with."""
    if not value.startswith(SIGNED_PREFIX):
        return None
    try:
        return Signer(secret, salt="cookie").unsign(value[len(SIGNED_PREFIX):]).decode("utf-8")
    except BadSignature:
        return None


class CookieParserMiddleware:
    """Expose ``request.state.cookies`` and ``request.state.signed_cookies``."""

    def __init__(self, app: ASGIApp, secret: str) -> None:
        self.app = app
        self.secret = secret

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        cookies: dict[str, str] = {}
        signed: dict[str, str] = {}
        for name, value in cookie_parser(Headers(scope=scope).get("cookie", "")).items():
            if value.startswith(SIGNED_PREFIX):
                original = unsign_cookie_value(value, self.secret)
                if original is not None:
                    signed[name] = original
            else:
                cookies[name] = value

        state = scope.setdefault("state", {})
        state["cookies"] = cookies
        state["signed_cookies"] = signed

        await self.app(scope, receive, send)
