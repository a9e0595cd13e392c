"""Session management — per-connection bindings to a protocol engine."""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from switchboard.protocol.models import ServerInfo
from switchboard.protocol.server import MCPServer

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Return an opaque id of the form ``mcp-<epoch ms>-<9 random chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"mcp-{int(time.time() * 1000)}-{suffix}"


@dataclass
class SessionData:
    """One client connection bound to a private or shared engine."""

    session_id: str
    server: MCPServer
    created_at: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)
    metadata: dict[str, Any] | None = None


class SessionStore:
    """In-memory session table.

    Sessions are not expired on a timer; the owner calls
    :meth:`cleanup_stale` whenever it wants to sweep.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionData] = {}

    def create(self, info: ServerInfo, metadata: dict[str, Any] | None = None) -> SessionData:
        """Create a session that owns a fresh :class:`MCPServer`."""
        session = SessionData(generate_session_id(), MCPServer(info), metadata=metadata)
        self._sessions[session.session_id] = session
        return session

    def create_with_shared_server(
        self,
        server: MCPServer,
        session_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SessionData:
        """Create a session bound to an existing engine (shared tool registry)."""
        session = SessionData(session_id or generate_session_id(), server, metadata=metadata)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> SessionData | None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_activity = _now()
        return session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def clear(self) -> None:
        self._sessions.clear()

    @property
    def size(self) -> int:
        return len(self._sessions)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def cleanup_stale(self, max_age_seconds: float) -> int:
        """Drop sessions idle for longer than *max_age_seconds*; return how many."""
        now = _now()
        stale = [
            sid
            for sid, session in self._sessions.items()
            if (now - session.last_activity).total_seconds() > max_age_seconds
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("Removed %d stale session(s)", len(stale))
        return len(stale)

    def notify_all(self, fn: Callable[[MCPServer], None]) -> None:
        """Call *fn* with each session's engine; one failure does not stop the rest."""
        for session in list(self._sessions.values()):
            try:
                fn(session.server)
            except Exception:
                logger.warning("Failed to notify session %s", session.session_id, exc_info=True)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
