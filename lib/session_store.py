# =============================================================================
# lib/session_store.py - Server-Side Session Storage
# =============================================================================
# Sessions are kept on the server, keyed by an id the client carries in a
# signed cookie. Stores hold the serialized (JSON) session data so a handler
# cannot mutate stored state without going through the session middleware.
#
# Usage:
#   store = MemoryStore()
#   await store.set("abc", '{"views": 1}', max_age=3600)
#   data = await store.get("abc")
#   await store.destroy("abc")
# =============================================================================

from __future__ import annotations

import time
from abc import ABC, abstractmethod


class SessionStore(ABC):
    """Async key/value store for serialized session data."""

    @abstractmethod
    async def get(self, session_id: str) -> str | None:
        """Return the serialized session, or None if missing or expired."""

    @abstractmethod
    async def set(self, session_id: str, data: str, max_age: int | None = None) -> None:
        """Store the serialized session; max_age in seconds, None = no expiry."""

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """Remove the session. Missing ids are ignored."""


class MemoryStore(SessionStore):
    """
    In-process session store.

    Suitable for a single server process. Data is lost on restart and is not
    shared between workers. Expired entries are pruned on every write;
    sessions stored without max_age live until destroyed, so set
    SESSION_MAX_AGE to bound memory use.
    """

    def __init__(self, clock=time.monotonic):
        self._sessions: dict[str, tuple[str, float | None]] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, session_id: str) -> str | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        data, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._sessions[session_id]
            return None
        return data

    def prune(self) -> int:
        """Drop expired sessions; returns how many were removed."""
        now = self._clock()
        expired = [
            session_id
            for session_id, (_, expires_at) in self._sessions.items()
            if expires_at is not None and expires_at <= now
        ]
        for session_id in expired:
            del self._sessions[session_id]
        return len(expired)

    async def set(self, session_id: str, data: str, max_age: int | None = None) -> None:
        self.prune()
        expires_at = self._clock() + max_age if max_age else None
        self._sessions[session_id] = (data, expires_at)

    async def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
