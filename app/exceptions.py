# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception handling for the server.
# Errors carry a machine-readable code and, where possible, a suggestion that
# tells the operator how to fix the problem.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServerError(Exception):
    """
    Base exception for the web server.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "SERVER_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Render the error for middleware that runs outside the router."""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


# =============================================================================
# Request Body Exceptions
# =============================================================================

class InvalidBodyError(ServerError):
    """Raised when a JSON body cannot be decoded."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Malformed request body: {error}",
            code="INVALID_BODY",
            status_code=400,
            suggestion="Send valid JSON or change the Content-Type header",
            details={"error": error}
        )


class PayloadTooLargeError(ServerError):
    """Raised when a request body exceeds the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            message=f"Request body too large: {size} bytes (max: {limit} bytes)",
            code="PAYLOAD_TOO_LARGE",
            status_code=413,
            suggestion=f"Send a body smaller than {limit} bytes",
            details={"size": size, "limit": limit}
        )


# =============================================================================
# Startup Exceptions
# =============================================================================

class ListenerBindError(ServerError):
    """Raised when the HTTP listener cannot bind its address."""

    def __init__(self, host: str, port: int, error: str):
        super().__init__(
            message=f"Could not bind {host}:{port}: {error}",
            code="LISTENER_BIND_FAILED",
            suggestion="Check that the port is free and HOST is a local address",
            details={"host": host, "port": port, "error": error}
        )


class DatabaseConnectionError(ServerError):
    """Raised when the database client cannot be created."""

    def __init__(self, uri: str, error: str):
        super().__init__(
            message=f"Database connection error: {error}",
            code="DATABASE_CONNECTION_FAILED",
            suggestion="Check the DATABASE connection string in your .env file",
            details={"uri": uri, "error": error}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def server_exception_handler(
    request: Request,
    exc: ServerError
) -> JSONResponse:
    """
    Convert ServerError to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return exc.to_response()


async def unhandled_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )
