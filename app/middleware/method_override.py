# =============================================================================
# app/middleware/method_override.py - HTTP Method Override
# =============================================================================
# HTML forms can only send GET and POST. A POST carrying a "_method" query
# parameter or form field is re-dispatched with that method instead, e.g.
#
#   <form method="POST" action="/items/1?_method=DELETE">
#   <input type="hidden" name="_method" value="PUT">
#
# Must run after body parsing and before routing.
# =============================================================================

import logging

from starlette.datastructures import QueryParams
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset({"GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"})


class MethodOverrideMiddleware:
    """Replace POST with the method named in ``field``."""

    def __init__(self, app: ASGIApp, field: str = "_method") -> None:
        self.app = app
        self.field = field

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["method"] == "POST":
            method = self._requested_method(scope)
            if method is not None:
                method = method.strip().upper()
                if method in ALLOWED_METHODS:
                    scope.setdefault("state", {})["original_method"] = scope["method"]
                    scope["method"] = method
                    logger.debug(f"Overriding POST {scope['path']} as {method}")

        await self.app(scope, receive, send)

    def _requested_method(self, scope: Scope) -> str | None:
        query = QueryParams(scope.get("query_string", b""))
        if self.field in query:
            return query[self.field]

        body = scope.get("state", {}).get("body")
        if isinstance(body, dict) and self.field in body:
            value = body.pop(self.field)
            if isinstance(value, list):
                value = value[0] if value else None
            return value if isinstance(value, str) else None
        return None
