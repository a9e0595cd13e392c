"""Tests for the health tool."""

from __future__ import annotations

import json
from datetime import datetime

from switchboard.controller.tools import health


async def test_health_reports_ok() -> None:
    result = await health.health({})

    payload = json.loads(result.text)
    assert result.is_error is False
    assert payload["status"] == "ok"
    assert payload["timestamp"].endswith("Z")
    datetime.fromisoformat(payload["timestamp"].replace("Z", "+00:00"))


def test_definition() -> None:
    assert health.DEFINITION.name == "health"
    assert health.DEFINITION.input_schema["type"] == "object"
