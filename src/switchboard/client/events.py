"""ClientEvents — per-connection observer list for transport lifecycle events.

Event names and payloads:

- ``connected`` — ``{}``
- ``disconnected`` — ``{"code": int | None}``
- ``error`` — ``{"error": Exception}``
- ``message`` (stdio) — ``{"message": dict}``
- ``reconnecting`` (sse) — ``{"attempt": int}``
- ``session-changed`` (sse) — ``{"old_id": str | None, "new_id": str}``
- ``sse:<event>`` (sse) — ``{"data": str}`` for every named stream event
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"
ERROR = "error"
MESSAGE = "message"
RECONNECTING = "reconnecting"
SESSION_CHANGED = "session-changed"

Listener = Callable[[dict[str, Any]], None]


class ClientEvents:
    """Named-event observer list.

    Listener failures are logged and do not stop delivery to the other
    listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload or {})
            except Exception:
                logger.exception("Listener for %r failed", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
