# =============================================================================
# tests/test_middleware.py - Middleware Stage Tests
# =============================================================================
# Each middleware stage exercised through the full application, plus a few
# stages tested in isolation on a bare Starlette app.
# =============================================================================

import json
import logging
from unittest.mock import patch

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from app.middleware import (
    LocalsMiddleware,
    SecurityHeadersMiddleware,
    sign_cookie_value,
    unsign_cookie_value,
)
from app.middleware.security import DEFAULT_SECURITY_HEADERS
from tests.conftest import TEST_SECRET


async def _echo_state(request: Request):
    """Return what the middleware stages left on request.state."""
    return {
        "body": getattr(request.state, "body", None),
        "cookies": getattr(request.state, "cookies", None),
        "signed_cookies": getattr(request.state, "signed_cookies", None),
        "method": request.method,
        "client": request.client.host if request.client else None,
        "scheme": request.url.scheme,
        "raw": (await request.body()).decode("utf-8"),
    }


@pytest.fixture
def echo_client(make_app):
    """Client for an app with an /echo route accepting any method."""

    def _make(**overrides):
        app = make_app(**overrides)
        app.add_api_route("/echo", _echo_state, methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
        return TestClient(app)

    return _make


# =============================================================================
# Security headers
# =============================================================================

class TestSecurityHeaders:

    def test_headers_on_every_response(self, client):
        for path in ("/", "/missing", "/hello.txt"):
            response = client.get(path)
            for name, value in DEFAULT_SECURITY_HEADERS.items():
                assert response.headers[name] == value, f"{name} missing on {path}"

    def test_no_server_fingerprint(self, client):
        assert "x-powered-by" not in client.get("/").headers

    def test_existing_header_kept(self):
        async def framed(request):
            return PlainTextResponse("ok", headers={"X-Frame-Options": "DENY"})

        app = Starlette(routes=[Route("/", framed)], middleware=[Middleware(SecurityHeadersMiddleware)])

        response = TestClient(app).get("/")

        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"


# =============================================================================
# Static files
# =============================================================================

class TestStaticFiles:

    def test_serves_file_verbatim(self, client):
        response = client.get("/hello.txt")

        assert response.status_code == 200
        assert response.text == "hello from disk"

    def test_head_request(self, client):
        response = client.head("/hello.txt")

        assert response.status_code == 200
        assert response.headers["content-length"] == str(len("hello from disk"))

    def test_post_falls_through(self, client):
        assert client.post("/hello.txt").status_code == 404

    def test_missing_directory_falls_through(self, make_app, tmp_path):
        client = TestClient(make_app(static_dir=str(tmp_path / "absent")))

        assert client.get("/").status_code == 200
        assert client.get("/hello.txt").status_code == 404

    def test_path_traversal_rejected(self, client):
        response = client.get("/../conftest.py")

        assert response.status_code == 404

    def test_unreadable_file_answered_not_raised(self, client):
        denied = HTTPException(status_code=401)
        with patch("app.middleware.static.StaticFiles.get_response", side_effect=denied):
            response = client.get("/hello.txt")

        assert response.status_code == 401
        assert response.text == "Unauthorized"


# =============================================================================
# Body parsing
# =============================================================================

class TestBodyParser:

    def test_json_body(self, echo_client):
        response = echo_client().post("/echo", json={"name": "ada", "tags": ["a", "b"]})

        assert response.json()["body"] == {"name": "ada", "tags": ["a", "b"]}

    def test_urlencoded_body(self, echo_client):
        response = echo_client().post("/echo", data={"name": "ada", "role": ["admin", "dev"]})

        assert response.json()["body"] == {"name": "ada", "role": ["admin", "dev"]}

    def test_raw_body_replayed_to_handler(self, echo_client):
        response = echo_client().post("/echo", json={"name": "ada"})

        assert json.loads(response.json()["raw"]) == {"name": "ada"}

    def test_other_content_types_untouched(self, echo_client):
        response = echo_client().post("/echo", content=b"plain text", headers={"Content-Type": "text/plain"})

        assert response.json()["body"] is None
        assert response.json()["raw"] == "plain text"

    def test_malformed_json_rejected(self, echo_client):
        response = echo_client().post(
            "/echo", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_BODY"

    def test_body_over_limit_rejected(self, echo_client):
        response = echo_client(body_limit=16).post("/echo", json={"text": "x" * 100})

        assert response.status_code == 413
        assert response.json()["code"] == "PAYLOAD_TOO_LARGE"
        assert response.json()["details"]["limit"] == 16


# =============================================================================
# Cookie parsing
# =============================================================================

class TestCookieParser:

    def test_sign_and_unsign(self):
        signed = sign_cookie_value("42", TEST_SECRET)

        assert signed.startswith("s:")
        assert unsign_cookie_value(signed, TEST_SECRET) == "42"
        assert unsign_cookie_value(signed, "other-secret") is None
        assert unsign_cookie_value("42", TEST_SECRET) is None

    def test_plain_and_signed_cookies(self, echo_client):
        client = echo_client()
        client.cookies.set("theme", "dark")
        client.cookies.set("remember", sign_cookie_value("yes", TEST_SECRET))
        client.cookies.set("forged", "s:yes.notavalidsignature")

        state = client.get("/echo").json()

        assert state["cookies"] == {"theme": "dark"}
        assert state["signed_cookies"] == {"remember": "yes"}

    def test_no_cookies(self, echo_client):
        state = echo_client().get("/echo").json()

        assert state["cookies"] == {}
        assert state["signed_cookies"] == {}


# =============================================================================
# Method override
# =============================================================================

class TestMethodOverride:

    def test_query_parameter(self, echo_client):
        assert echo_client().post("/echo?_method=put").json()["method"] == "PUT"

    def test_form_field_removed_from_body(self, echo_client):
        state = echo_client().post("/echo", data={"_method": "PATCH", "name": "ada"}).json()

        assert state["method"] == "PATCH"
        assert state["body"] == {"name": "ada"}

    def test_json_field(self, echo_client):
        assert echo_client().post("/echo", json={"_method": "DELETE"}).json()["method"] == "DELETE"

    def test_only_post_is_overridden(self, echo_client):
        assert echo_client().put("/echo?_method=DELETE").json()["method"] == "PUT"

    def test_unsupported_method_ignored(self, echo_client):
        assert echo_client().post("/echo?_method=TRACE").json()["method"] == "POST"


# =============================================================================
# Trusted proxy
# =============================================================================

class TestTrustedProxy:

    HEADERS = {"X-Forwarded-For": "203.0.113.9, 10.0.0.2", "X-Forwarded-Proto": "https"}

    def test_one_hop(self, echo_client):
        state = echo_client(trust_proxy=1).get("/echo", headers=self.HEADERS).json()

        assert state["client"] == "10.0.0.2"
        assert state["scheme"] == "https"

    def test_two_hops(self, echo_client):
        state = echo_client(trust_proxy=2).get("/echo", headers=self.HEADERS).json()

        assert state["client"] == "203.0.113.9"

    def test_hops_beyond_chain_use_first_address(self, echo_client):
        state = echo_client(trust_proxy=5).get("/echo", headers=self.HEADERS).json()

        assert state["client"] == "203.0.113.9"

    def test_disabled(self, echo_client):
        state = echo_client(trust_proxy=0).get("/echo", headers=self.HEADERS).json()

        assert state["client"] == "testclient"
        assert state["scheme"] == "http"


# =============================================================================
# CORS
# =============================================================================

class TestCors:

    def test_wildcard_origin(self, client):
        response = client.get("/", headers={"Origin": "https://elsewhere.example"})

        assert response.headers["access-control-allow-origin"] == "*"

    def test_preflight(self, client):
        response = client.options(
            "/",
            headers={
                "Origin": "https://elsewhere.example",
                "Access-Control-Request-Method": "DELETE",
            },
        )

        assert response.status_code == 200
        assert "DELETE" in response.headers["access-control-allow-methods"]

    def test_configured_origins(self, make_app):
        client = TestClient(make_app(cors_origins="https://app.example"))

        allowed = client.get("/", headers={"Origin": "https://app.example"})
        other = client.get("/", headers={"Origin": "https://evil.example"})

        assert allowed.headers["access-control-allow-origin"] == "https://app.example"
        assert "access-control-allow-origin" not in other.headers


# =============================================================================
# View locals
# =============================================================================

class _User:
    is_authenticated = True
    username = "ada"


class _InjectUser:
    """Stands in for an authentication layer."""

    def __init__(self, app, user):
        self.app = app
        self.user = user

    async def __call__(self, scope, receive, send):
        scope["user"] = self.user
        await self.app(scope, receive, send)


def _locals_app(user):
    async def view(request):
        return JSONResponse({"user": getattr(request.state.locals["user"], "username", None)})

    return Starlette(
        routes=[Route("/", view)],
        middleware=[Middleware(_InjectUser, user=user), Middleware(LocalsMiddleware)],
    )


class TestLocals:

    def test_user_exposed_and_logged(self, caplog):
        client = TestClient(_locals_app(_User()))

        with caplog.at_level(logging.INFO, logger="app.middleware.locals"):
            response = client.get("/")

        assert response.json() == {"user": "ada"}
        assert "ada has logged in" in caplog.text

    def test_anonymous_request(self, caplog):
        client = TestClient(_locals_app(None))

        with caplog.at_level(logging.INFO, logger="app.middleware.locals"):
            response = client.get("/")

        assert response.json() == {"user": None}
        assert "has logged in" not in caplog.text
        assert "Session ID: None" in caplog.text

    def test_session_id_logged_for_every_request(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="app.middleware.locals"):
            client.get("/")
            client.get("/missing")

        session_lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Session ID: ")]
        assert len(session_lines) == 2
        assert all(line != "Session ID: None" for line in session_lines)
