# =============================================================================
# app/middleware/ - Request Middleware
# =============================================================================
# One module per middleware stage. Stages are plain ASGI classes; the order
# they wrap the application in is decided by app.main.build_middleware().
# =============================================================================

from app.middleware.body import BodyParserMiddleware
from app.middleware.cookies import CookieParserMiddleware, sign_cookie_value, unsign_cookie_value
from app.middleware.locals import LocalsMiddleware
from app.middleware.method_override import MethodOverrideMiddleware
from app.middleware.proxy import TrustedProxyMiddleware
from app.middleware.request_logger import RequestLoggerMiddleware
from app.middleware.security import SecurityHeadersMiddleware
from app.middleware.session import SessionMiddleware
from app.middleware.static import StaticFilesMiddleware

__all__ = [
    "BodyParserMiddleware",
    "CookieParserMiddleware",
    "LocalsMiddleware",
    "MethodOverrideMiddleware",
    "RequestLoggerMiddleware",
    "SecurityHeadersMiddleware",
    "SessionMiddleware",
    "StaticFilesMiddleware",
    "TrustedProxyMiddleware",
    "sign_cookie_value",
    "unsign_cookie_value",
]
