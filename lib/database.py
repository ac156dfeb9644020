# =============================================================================
# lib/database.py - MongoDB Connection Wrapper
# =============================================================================
# Owns the single database connection handle used by the server.
#
# The handle is opened once at startup and released once at shutdown.
# Opening never raises: driver failures are reported through the "error"
# event and the server keeps starting. The driver may still reach the
# server later, which moves the state back to CONNECTED.
#
# State machine:
#   DISCONNECTED -> CONNECTING -> CONNECTED -> (ERROR | DISCONNECTED)
#   ERROR -> CONNECTED (heartbeat recovered)
#   any -> DISCONNECTED (close)
#
# Usage:
#   database = DatabaseConnection(settings.database_uri)
#   database.on("connected", lambda uri: print("up", uri))
#   await database.open()
#   ...
#   await database.close()
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Callable

from pymongo import AsyncMongoClient, monitoring
from pymongo.errors import PyMongoError

from app.exceptions import DatabaseConnectionError
from lib.utils import redact_uri

# Set up logging for this module
logger = logging.getLogger(__name__)

EVENTS = ("connected", "error", "disconnected")


class ConnectionState(str, Enum):
    """Lifecycle states of the database connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class _HeartbeatListener(monitoring.ServerHeartbeatListener):
    """Feeds driver heartbeats into the connection state machine."""

    def __init__(self, connection: DatabaseConnection):
        self._connection = connection

    def started(self, event: monitoring.ServerHeartbeatStartedEvent) -> None:
        pass

    def succeeded(self, event: monitoring.ServerHeartbeatSucceededEvent) -> None:
        self._connection._mark_connected()

    def failed(self, event: monitoring.ServerHeartbeatFailedEvent) -> None:
        self._connection._mark_error(event.reply)


class DatabaseConnection:
    """
    Opaque handle around an asyncio MongoDB client.

    Observers registered with ``on()`` are called on every state transition
    into ``connected``, ``error`` and ``disconnected``. Repeated heartbeats in
    the same state do not re-notify.

    ``close()`` is safe to call from any termination path: only the first
    call releases the client, later calls return False.
    """

    def __init__(
        self,
        uri: str,
        timeout_ms: int = 5000,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.uri = uri
        self.timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._client: Any = None
        self._probe_task: asyncio.Task | None = None
        self._observers: dict[str, list[Callable[..., Any]]] = {event: [] for event in EVENTS}
        self._lock = threading.Lock()
        self._closed = False
        self.state = ConnectionState.DISCONNECTED
        self.last_error: BaseException | None = None

    @property
    def client(self) -> Any:
        """The underlying driver client (None until opened)."""
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """
        Register an observer for a connection event.

        Args:
            event: One of "connected", "error", "disconnected"
            callback: Called with the redacted URI ("connected"), the error
                ("error") or no arguments ("disconnected")
        """
        if event not in self._observers:
            raise ValueError(f"Unknown database event: {event!r} (expected one of {', '.join(EVENTS)})")
        self._observers[event].append(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._observers[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Database '{event}' observer failed")

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def _mark_connected(self) -> None:
        with self._lock:
            if self._closed or self.state == ConnectionState.CONNECTED:
                return
            self.state = ConnectionState.CONNECTED
        self._emit("connected", redact_uri(self.uri))

    def _mark_error(self, error: BaseException) -> None:
        with self._lock:
            if self._closed or self.state == ConnectionState.ERROR:
                return
            self.state = ConnectionState.ERROR
            self.last_error = error
        self._emit("error", error)

    def _mark_disconnected(self) -> None:
        with self._lock:
            if self.state == ConnectionState.DISCONNECTED:
                return
            self.state = ConnectionState.DISCONNECTED
        self._emit("disconnected")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """
        Start connecting to the database without waiting for it.

        Creates the client and schedules a background ping. Errors, whether
        raised while building the client (bad URI) or reported later by the
        driver, move the state to ERROR and are never re-raised.
        """
        if self._client is not None or self._closed:
            return

        self.state = ConnectionState.CONNECTING
        try:
            self._client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.timeout_ms,
                event_listeners=[_HeartbeatListener(self)],
            )
        except (PyMongoError, ValueError, TypeError) as e:
            self._mark_error(DatabaseConnectionError(redact_uri(self.uri), str(e)))
            return

        self._probe_task = asyncio.create_task(self._probe())

    async def _probe(self) -> None:
        try:
            await self._client.admin.command("ping")
        except asyncio.CancelledError:
            raise
        except PyMongoError as e:
            self._mark_error(e)
            return
        self._mark_connected()

    async def ping(self) -> bool:
        """Round-trip to the server; False when unreachable or closed."""
        if self._client is None or self._closed:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            self._mark_error(e)
            return False
        self._mark_connected()
        return True

    async def close(self) -> bool:
        """
        Release the connection.

        Returns:
            True if this call released the connection, False if it was
            already closed.
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True

        if self._probe_task is not None and not self._probe_task.done():
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass

        if self._client is not None:
            try:
                await self._client.close()
            except PyMongoError as e:
                logger.warning(f"Error while closing database client: {e}")

        self._mark_disconnected()
        return True
