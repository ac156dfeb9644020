# =============================================================================
# app/middleware/static.py - Static File Serving
# =============================================================================
# Serves files from a directory at matching request paths. Requests that do
# not name an existing file continue down the middleware chain, so the
# static directory never shadows application routes.
# =============================================================================

import logging
import os

from starlette.exceptions import HTTPException
from starlette.responses import PlainTextResponse
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class StaticFilesMiddleware:
    """Answer GET/HEAD requests for files under ``directory``."""

    def __init__(self, app: ASGIApp, directory: str | os.PathLike) -> None:
        self.app = app
        self.directory = directory
        self.static = StaticFiles(directory=directory, check_dir=False)
        if not os.path.isdir(directory):
            logger.warning(f"Static directory {directory} does not exist; no files will be served")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        path = self.static.get_path(scope)
        try:
            response = await self.static.get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code == 404:
                await self.app(scope, receive, send)
                return
            # e.g. 401 for an unreadable file
            response = PlainTextResponse(exc.detail, status_code=exc.status_code, headers=exc.headers)

        await response(scope, receive, send)
