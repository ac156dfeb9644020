# =============================================================================
# app/middleware/request_logger.py - Development Request Logging
# =============================================================================
# Logs one concise line per request once the response has been sent:
#
#   GET / 200 1.234 ms - 45
# =============================================================================

import logging
import time

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware:
    """Log method, path, status, duration and response length."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        status_code = 500
        length = "-"

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, length
            if message["type"] == "http.response.start":
                status_code = message["status"]
                length = Headers(raw=message.get("headers", [])).get("content-length", "-")
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(f"{scope['method']} {scope['path']} {status_code} {duration_ms:.3f} ms - {length}")
