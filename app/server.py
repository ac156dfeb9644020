# =============================================================================
# app/server.py - Bootstrap Sequencer
# =============================================================================
# Starts the web server in a fixed order:
#
#   1. open the database connection and log its state transitions
#   2. register termination signal handlers
#   3-6. build the application (transport settings, middleware, locals, routes)
#   7. bind the listener and serve
#
# Failures are logged, never fatal: an unreachable database still lets the
# listener bind, and a listener that cannot bind leaves the process waiting
# for a termination signal so the database is still released cleanly.
#
# Usage:
#   webserver                          # console script
#   python scripts/start_server.py
# =============================================================================

import asyncio
import contextlib
import logging
import signal
import socket
from dataclasses import dataclass, field

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from app.config import Settings, get_settings
from app.exceptions import ListenerBindError
from app.lifecycle import SHUTDOWN_REASONS, SignalHarness, exit_for_signal, graceful_shutdown
from app.main import configure_logging, create_app
from lib.database import DatabaseConnection
from lib.session_store import SessionStore

logger = logging.getLogger(__name__)

# Seconds a forced stop waits for Uvicorn before cancelling the serve task
FORCE_EXIT_GRACE = 1.0


class _ManagedServer(uvicorn.Server):
    """Uvicorn server that leaves signal handling to SignalHarness."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


@dataclass
class ServerHandle:
    """Everything start() brought up; the caller owns it and shuts it down."""

    settings: Settings
    database: DatabaseConnection
    app: FastAPI | None = None
    signals: SignalHarness | None = None
    server: uvicorn.Server | None = None
    task: asyncio.Task | None = None
    address: tuple[str, int] | None = None
    _forced: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def listening(self) -> bool:
        return (
            self.server is not None
            and self.server.started
            and self.task is not None
            and not self.task.done()
        )

    @property
    def url(self) -> str | None:
        if self.address is None:
            return None
        host, port = self.address
        return f"http://{host}:{port}"

    async def wait_for_termination(self) -> signal.Signals:
        """Block until a termination signal arrives."""
        if self.signals is None:
            raise RuntimeError("Signal handlers were not installed for this server")
        return await self.signals.wait()

    def force_exit(self, sig: signal.Signals | None = None) -> None:
        """Stop waiting for open requests; used on a repeated signal."""
        if self.server is not None:
            self.server.force_exit = True
        self._forced.set()

    async def stop_listener(self) -> None:
        """
        Stop accepting connections and give in-flight requests
        ``settings.shutdown_timeout`` seconds to finish.

        Uvicorn cancels requests that outlive the timeout. If the serve task
        still has not returned by then, or force_exit() was called, it is
        cancelled so the caller can always go on to release the database.
        """
        if self.server is None or self.task is None:
            return
        self.server.should_exit = True

        forced = asyncio.ensure_future(self._forced.wait())
        try:
            await asyncio.wait(
                {self.task, forced},
                timeout=self.settings.shutdown_timeout + FORCE_EXIT_GRACE,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            forced.cancel()

        if not self.task.done() and self._forced.is_set():
            await asyncio.wait({self.task}, timeout=FORCE_EXIT_GRACE)

        if not self.task.done():
            logger.warning("Web server did not stop in time, cancelling it")
            self.task.cancel()
            await asyncio.wait({self.task})

        if not self.task.cancelled() and self.task.exception() is not None:
            exc = self.task.exception()
            logger.error(f"Web server stopped with an error: {exc}", exc_info=exc)

    async def shutdown(self, reason: str) -> bool:
        """
        Stop the listener, then release the database.

        Returns:
            True if this call closed the database connection
        """
        await self.stop_listener()
        if self.signals is not None:
            self.signals.uninstall()
        return await graceful_shutdown(self.database, reason)


# =============================================================================
# Startup steps
# =============================================================================

def _observe_database(database: DatabaseConnection) -> None:
    database.on("connected", lambda uri: logger.info(f"Database connected to: {uri}"))
    database.on("error", lambda error: logger.error(f"Database connection error: {error}"))
    database.on("disconnected", lambda: logger.info("Database disconnected"))


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind and listen on host:port.

    Raises:
        ListenerBindError: If the address is in use or not local
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        sock = socket.create_server((host, port), family=family)
    except OSError as e:
        raise ListenerBindError(host, port, e.strerror or str(e)) from e
    sock.set_inheritable(True)
    return sock


async def _wait_until_started(server: uvicorn.Server, task: asyncio.Task) -> None:
    while not server.started and not task.done():
        await asyncio.sleep(0.01)


async def start(
    settings: Settings,
    *,
    database: DatabaseConnection | None = None,
    session_store: SessionStore | None = None,
    install_signal_handlers: bool = True,
) -> ServerHandle:
    """
    Bring the server up.

    Args:
        settings: Validated server settings
        database: Connection to use instead of one built from settings
        session_store: Session store passed to the application
        install_signal_handlers: Register SIGUSR2/SIGINT/SIGTERM handlers

    Returns:
        ServerHandle: Check ``listening`` to see whether the listener bound
    """
    # 1. Database
    if database is None:
        database = DatabaseConnection(settings.database_uri, timeout_ms=settings.database_timeout_ms)
    _observe_database(database)
    await database.open()

    handle = ServerHandle(settings=settings, database=database)

    # 2. Termination handlers
    if install_signal_handlers:
        handle.signals = SignalHarness()
        handle.signals.install()

    # 3-6. Transport settings, middleware, locals, routes
    try:
        handle.app = create_app(settings, database, session_store=session_store)
    except Exception:
        logger.exception("Server initialization failed")
        return handle

    # 7. Listener
    try:
        sock = bind_socket(settings.hostname, settings.port)
    except ListenerBindError as e:
        logger.error(e.message)
        return handle

    config = uvicorn.Config(
        handle.app,
        log_config=None,
        access_log=False,
        server_header=False,
        proxy_headers=False,
        lifespan="on",
        timeout_graceful_shutdown=settings.shutdown_timeout,
    )
    handle.server = _ManagedServer(config)
    if handle.signals is not None:
        handle.signals.on_repeat(handle.force_exit)
    handle.task = asyncio.create_task(handle.server.serve(sockets=[sock]))
    await _wait_until_started(handle.server, handle.task)

    if not handle.server.started:
        if handle.task.done() and not handle.task.cancelled() and handle.task.exception():
            logger.error(f"Web server failed to start: {handle.task.exception()}")
        else:
            logger.error("Web server failed to start")
        sock.close()
        return handle

    host, port = sock.getsockname()[:2]
    handle.address = (host, port)
    logger.info(f"Web Server running at http://{host}:{port}")
    logger.info("press Ctrl-C to terminate.")
    logger.info("Server running smoothly...")
    return handle


async def run(settings: Settings, *, database: DatabaseConnection | None = None) -> signal.Signals:
    """
    Start the server, wait for a termination signal, shut down.

    Returns:
        The signal that ended the run
    """
    handle = await start(settings, database=database)
    sig = await handle.wait_for_termination()
    await handle.shutdown(SHUTDOWN_REASONS[sig])
    return sig


def main() -> None:
    """Console entry point."""
    load_dotenv()
    settings = get_settings()
    configure_logging(settings)

    sig = asyncio.run(run(settings))
    exit_for_signal(sig)


if __name__ == "__main__":
    main()
