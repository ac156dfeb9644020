# =============================================================================
# app/main.py - FastAPI Application Factory
# =============================================================================
# Builds the FastAPI application: middleware in a fixed order, exception
# handlers and routes. There is no module-level app; callers own the
# instance returned by create_app().
#
# Usage:
#   app = create_app(settings, database)
#   # or let app.server.start() build and serve it
# =============================================================================

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware import Middleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app.config import Settings
from app.exceptions import (
    ServerError,
    server_exception_handler,
    unhandled_exception_handler,
)
from app.middleware import (
    BodyParserMiddleware,
    CookieParserMiddleware,
    LocalsMiddleware,
    MethodOverrideMiddleware,
    RequestLoggerMiddleware,
    SecurityHeadersMiddleware,
    SessionMiddleware,
    StaticFilesMiddleware,
    TrustedProxyMiddleware,
)
from app.routers import index
from lib.database import DatabaseConnection
from lib.session_store import MemoryStore, SessionStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Methods the CORS layer advertises to browsers
CORS_METHODS = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
    )


# =============================================================================
# Middleware
# =============================================================================

def build_middleware(settings: Settings, session_store: SessionStore) -> list[Middleware]:
    """
    Return the middleware stack, outermost first.

    Order matters: each stage can answer or rewrite the request before the
    next one sees it.

    1. trusted proxy hops (transport)
    2. security headers
    3. static files
    4. body parsing (JSON, URL-encoded)
    5. cookie parsing
    6. sessions
    7. method override
    8. CORS
    9. development request logging | production compression
    10. view locals
    """
    origins = settings.cors_origins_list or ["*"]

    middleware = [
        Middleware(TrustedProxyMiddleware, hops=settings.trust_proxy),
        Middleware(SecurityHeadersMiddleware),
        Middleware(StaticFilesMiddleware, directory=Path(settings.static_dir)),
        Middleware(BodyParserMiddleware, limit=settings.body_limit),
        Middleware(CookieParserMiddleware, secret=settings.session_secret),
        Middleware(
            SessionMiddleware,
            secret=settings.session_secret,
            cookie_name=settings.session_cookie_name,
            store=session_store,
            max_age=settings.session_max_age,
            https_only=settings.is_production,
        ),
        Middleware(MethodOverrideMiddleware, field="_method"),
        Middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=CORS_METHODS,
            allow_headers=["*"],
        ),
    ]

    if settings.is_development:
        middleware.append(Middleware(RequestLoggerMiddleware))
    elif settings.is_production:
        middleware.append(Middleware(GZipMiddleware, minimum_size=500))

    middleware.append(Middleware(LocalsMiddleware))
    return middleware


# =============================================================================
# Application
# =============================================================================

def create_app(
    settings: Settings,
    database: DatabaseConnection | None = None,
    session_store: SessionStore | None = None,
) -> FastAPI:
    """
    Build a configured FastAPI application.

    Args:
        settings: Validated server settings
        database: Open database handle, exposed as ``app.state.database``
        session_store: Where sessions are kept (in-memory by default)

    Returns:
        FastAPI: The application, ready to be served
    """
    session_store = session_store if session_store is not None else MemoryStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting web server in {settings.environment} mode")
        yield
        logger.info("Shutting down web server")

    app = FastAPI(
        title="Web Server",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
        middleware=build_middleware(settings, session_store),
    )

    app.state.settings = settings
    app.state.database = database
    app.state.session_store = session_store

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(ServerError)
    async def handle_server_error(request: Request, exc: ServerError):
        """Handle custom server exceptions."""
        return await server_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def handle_general_exception(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        return await unhandled_exception_handler(request, exc)

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------

    app.include_router(index.router)

    return app
