# =============================================================================
# app/lifecycle.py - Termination Signals and Graceful Shutdown
# =============================================================================
# Three signals end the process:
#   SIGUSR2  restart (dev reloaders)   -> close database, re-send SIGUSR2
#   SIGINT   interrupt (Ctrl-C)        -> close database, exit 0
#   SIGTERM  platform shutdown         -> close database, exit 0
#
# The harness only records which signal arrived. The caller awaits it,
# runs graceful_shutdown(), then calls exit_for_signal(), so the database is
# released on every termination path before the process goes away.
#
# Usage:
#   harness = SignalHarness()
#   harness.install()
#   sig = await harness.wait()
#   await graceful_shutdown(database, SHUTDOWN_REASONS[sig])
#   exit_for_signal(sig)
# =============================================================================

import asyncio
import logging
import os
import signal
import sys

from lib.database import DatabaseConnection

logger = logging.getLogger(__name__)

# Not available on Windows
RESTART_SIGNAL = getattr(signal, "SIGUSR2", None)

SHUTDOWN_REASONS = {
    signal.SIGINT: "app termination",
    signal.SIGTERM: "platform shutdown",
}
if RESTART_SIGNAL is not None:
    SHUTDOWN_REASONS[RESTART_SIGNAL] = "restart"


def termination_signals() -> list[signal.Signals]:
    """Signals the server shuts down on, in registration order."""
    signals = [signal.SIGINT, signal.SIGTERM]
    if RESTART_SIGNAL is not None:
        signals.insert(0, RESTART_SIGNAL)
    return signals


async def graceful_shutdown(database: DatabaseConnection, reason: str) -> bool:
    """
    Release the database connection before the process exits.

    Safe to call from several termination paths; the connection is closed
    only by the first call.

    Returns:
        True if this call closed the connection
    """
    released = await database.close()
    if released:
        logger.info(f"Database disconnected through {reason}")
    else:
        logger.debug(f"Database already closed ({reason})")
    return released


def exit_for_signal(sig: signal.Signals) -> None:
    """
    Re-raise the termination after shutdown completed.

    The restart signal is delivered again with its default action so a
    supervising reloader sees the process stop the way it asked. Other
    signals exit cleanly.
    """
    if RESTART_SIGNAL is not None and sig == RESTART_SIGNAL:
        signal.signal(sig, signal.SIG_DFL)
        os.kill(os.getpid(), sig)
        return
    sys.exit(0)


class SignalHarness:
    """
    Turns termination signals into an awaitable result.

    The restart signal is handled once: after its first delivery its
    handler is removed, so a second SIGUSR2 gets the default action.
    Any other signal that arrives while shutting down is passed to the
    callbacks registered with on_repeat().
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._received: asyncio.Future | None = None
        self._installed: list[signal.Signals] = []
        self._repeat_callbacks: list = []

    @property
    def installed(self) -> list[signal.Signals]:
        return list(self._installed)

    def install(self) -> None:
        """Register handlers for every termination signal."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        if self._received is None:
            self._received = self._loop.create_future()

        for sig in termination_signals():
            if sig in self._installed:
                continue
            try:
                self._loop.add_signal_handler(sig, self.notify, sig)
            except (NotImplementedError, RuntimeError):
                # Event loops without add_signal_handler (e.g. Windows)
                loop = self._loop
                signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(self.notify, signal.Signals(signum)))
            self._installed.append(sig)

        logger.debug(f"Termination handlers installed for {', '.join(s.name for s in self._installed)}")

    def notify(self, sig: signal.Signals) -> None:
        """Record a termination signal, as if the OS delivered it."""
        if self._received is None:
            raise RuntimeError("SignalHarness.install() must be called before signals are delivered")

        if RESTART_SIGNAL is not None and sig == RESTART_SIGNAL:
            self._remove(sig)

        if self._received.done():
            if not self._repeat_callbacks:
                logger.warning(f"Already shutting down, ignoring {sig.name}")
                return
            logger.warning(f"Already shutting down, forcing exit on {sig.name}")
            for callback in self._repeat_callbacks:
                callback(sig)
            return

        logger.info(f"Received {sig.name}, shutting down")
        self._received.set_result(sig)

    def on_repeat(self, callback) -> None:
        """Call callback(sig) for every signal received after the first."""
        self._repeat_callbacks.append(callback)

    async def wait(self) -> signal.Signals:
        """Wait for the first termination signal."""
        if self._received is None:
            raise RuntimeError("SignalHarness.install() must be called before wait()")
        return await self._received

    def uninstall(self) -> None:
        """Restore default handling for every signal still registered."""
        for sig in list(self._installed):
            self._remove(sig)

    def _remove(self, sig: signal.Signals) -> None:
        if sig not in self._installed:
            return
        try:
            self._loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, signal.SIG_DFL)
        self._installed.remove(sig)
