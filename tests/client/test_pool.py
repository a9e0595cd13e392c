"""Tests for the reference-counted ConnectionPool."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from switchboard.client.pool import ConnectionPool


def _client() -> MagicMock:
    client = MagicMock()
    client.ref_count = 0
    client.close = AsyncMock()
    return client


class TestConnectionPool:
    def test_set_get_delete(self) -> None:
        pool = ConnectionPool()
        client = _client()
        pool.set("fs", client)

        assert pool.get("fs") is client
        assert "fs" in pool
        assert list(pool) == ["fs"]
        assert pool.delete("fs") is True
        assert pool.delete("fs") is False
        assert len(pool) == 0

    def test_acquire_counts(self) -> None:
        pool = ConnectionPool()
        client = _client()
        pool.set("fs", client)

        assert pool.acquire("fs", 3) == 3
        assert pool.acquire("fs") == 4

    def test_acquire_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            ConnectionPool().acquire("missing")

    async def test_release_closes_at_zero(self) -> None:
        pool = ConnectionPool()
        client = _client()
        pool.set("fs", client)
        pool.acquire("fs", 2)

        assert await pool.release("fs") is False
        client.close.assert_not_awaited()
        assert "fs" in pool

        assert await pool.release("fs") is True
        client.close.assert_awaited_once()
        assert "fs" not in pool

    async def test_release_unknown(self) -> None:
        assert await ConnectionPool().release("missing") is False

    async def test_close_all_ignores_counts_and_failures(self) -> None:
        pool = ConnectionPool()
        ok, broken = _client(), _client()
        broken.close = AsyncMock(side_effect=RuntimeError("x"))
        pool.set("ok", ok)
        pool.set("broken", broken)
        pool.acquire("ok", 5)

        await pool.close_all()

        ok.close.assert_awaited_once()
        broken.close.assert_awaited_once()
        assert pool.names() == []
