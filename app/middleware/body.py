# =============================================================================
# app/middleware/body.py - Request Body Parsing
# =============================================================================
# Parses JSON and URL-encoded form bodies once, up front, and exposes the
# result as ``request.state.body``. The raw bytes are replayed to the rest of
# the chain so handlers can still call ``request.json()`` or ``request.form()``.
#
# Body size is capped: anything above the limit is rejected with 413 before
# it reaches a handler. Malformed JSON is rejected with 400.
# =============================================================================

import json
from typing import Any, AsyncGenerator

from starlette.datastructures import Headers
from starlette.formparsers import FormParser
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.exceptions import InvalidBodyError, PayloadTooLargeError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _media_type(headers: Headers) -> str:
    return headers.get("content-type", "").split(";")[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


async def _single_chunk(body: bytes) -> AsyncGenerator[bytes, None]:
    yield body
    yield b""


class BodyParserMiddleware:
    """Parse JSON and URL-encoded bodies into ``request.state.body``."""

    def __init__(self, app: ASGIApp, limit: int = 100 * 1024) -> None:
        self.app = app
        self.limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        media_type = _media_type(headers)
        if not (_is_json(media_type) or media_type == FORM_CONTENT_TYPE):
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.limit:
            await PayloadTooLargeError(int(declared), self.limit).to_response()(scope, receive, send)
            return

        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.limit:
                await PayloadTooLargeError(size, self.limit).to_response()(scope, receive, send)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        if body:
            try:
                parsed = await self._parse(media_type, headers, body)
            except InvalidBodyError as exc:
                await exc.to_response()(scope, receive, send)
                return
            scope.setdefault("state", {})["body"] = parsed

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _parse(self, media_type: str, headers: Headers, body: bytes) -> Any:
        if _is_json(media_type):
            try:
                return json.loads(body)
            except ValueError as e:
                raise InvalidBodyError(str(e)) from e

        form = await FormParser(headers, _single_chunk(body)).parse()
        parsed: dict[str, Any] = {}
        for key in form.keys():
            values = form.getlist(key)
            parsed[key] = values[0] if len(values) == 1 else values
        return parsed
