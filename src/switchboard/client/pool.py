"""ConnectionPool — reference-counted remote-server connections.

One pool is created by whoever wires up the aggregator and passed
explicitly to it.  There is no lock: every read-modify-write of a
``ref_count`` happens without an ``await`` in between, which is atomic on
a single event loop.  Do not share a pool across threads.
"""

from __future__ import annotations

import logging
from typing import Iterator

from switchboard.client.base import MCPClient

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Map from server name to an open client.

    Usage::

        pool = ConnectionPool()
        pool.set("fs", client)
        pool.acquire("fs", 3)   # three proxied tools now use it
        await pool.release("fs")
    """

    def __init__(self) -> None:
        self._connections: dict[str, MCPClient] = {}

    def get(self, name: str) -> MCPClient | None:
        return self._connections.get(name)

    def set(self, name: str, client: MCPClient) -> None:
        self._connections[name] = client

    def delete(self, name: str) -> bool:
        return self._connections.pop(name, None) is not None

    def names(self) -> list[str]:
        return list(self._connections)

    def acquire(self, name: str, count: int = 1) -> int:
        """Add *count* references to *name*; returns the new count."""
        client = self._connections[name]
        client.ref_count += count
        return client.ref_count

    async def release(self, name: str) -> bool:
        """Drop one reference; close and remove the client at zero.

        Returns whether the connection was closed.
        """
        client = self._connections.get(name)
        if client is None:
            return False
        client.ref_count -= 1
        if client.ref_count > 0:
            return False
        if self._connections.get(name) is client:
            del self._connections[name]
        await client.close()
        logger.info("Closed MCP connection: %s", name)
        return True

    async def close_all(self) -> None:
        """Force-close every connection regardless of reference counts."""
        connections = list(self._connections.items())
        self._connections.clear()
        for name, client in connections:
            try:
                await client.close()
                logger.info("Closed MCP connection: %s", name)
            except Exception:
                logger.warning("Failed to close MCP connection %s", name, exc_info=True)

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[str]:
        return iter(self._connections)
