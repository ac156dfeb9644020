# =============================================================================
# app/middleware/proxy.py - Trusted Proxy Hops
# =============================================================================
# Behind a reverse proxy the socket peer is the proxy, not the client.
# With N trusted hops the client address is the N-th X-Forwarded-For entry
# counted from the right, and the scheme comes from X-Forwarded-Proto.
# =============================================================================

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send


class TrustedProxyMiddleware:
    """Rewrite ``client`` and ``scheme`` from headers set by trusted proxies."""

    def __init__(self, app: ASGIApp, hops: int = 1) -> None:
        self.app = app
        self.hops = hops

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] in ("http", "websocket") and self.hops > 0:
            headers = Headers(scope=scope)

            forwarded_for = headers.get("x-forwarded-for")
            if forwarded_for:
                addresses = [addr.strip() for addr in forwarded_for.split(",") if addr.strip()]
                if addresses:
                    client = addresses[-min(self.hops, len(addresses))]
                    scope["client"] = (client, 0)

            forwarded_proto = headers.get("x-forwarded-proto")
            if forwarded_proto:
                proto = forwarded_proto.split(",")[0].strip().lower()
                if proto in ("http", "https"):
                    if scope["type"] == "websocket":
                        proto = "wss" if proto == "https" else "ws"
                    scope["scheme"] = proto

        await self.app(scope, receive, send)
