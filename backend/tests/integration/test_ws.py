"""Integration tests for the live run log WebSocket.

Total: 3 tests
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bddrunner.core.log_buffer import InMemoryLogBuffer
from bddrunner.main import app
from bddrunner.ws import ConnectionManager


@pytest.fixture
def buffer(monkeypatch: pytest.MonkeyPatch) -> InMemoryLogBuffer:
    buf = InMemoryLogBuffer(max_lines=10)
    monkeypatch.setattr("bddrunner.main.get_log_store", lambda: buf)
    return buf


def test_backlog_sent_from_offset(buffer: InMemoryLogBuffer):
    for line in ("one", "two", "three"):
        buffer.append("run-1", line)

    with TestClient(app).websocket_connect("/ws/runs/run-1/logs?offset=1") as ws:
        first = ws.receive_json()
        second = ws.receive_json()

    assert first["offset"] == 1
    assert first["line"].endswith("two")
    assert second["offset"] == 2
    assert second["line"].endswith("three")


def test_backlog_offsets_stay_absolute_after_truncation(buffer: InMemoryLogBuffer):
    for i in range(12):
        buffer.append("run-1", f"line {i}")

    with TestClient(app).websocket_connect("/ws/runs/run-1/logs") as ws:
        first = ws.receive_json()

    assert first["offset"] == 2
    assert first["line"].endswith("line 2")


@pytest.mark.asyncio
async def test_broadcast_without_subscribers_is_noop():
    manager = ConnectionManager()

    await manager.broadcast("run-1", {"offset": 0, "line": "x"})

    assert manager.subscribers("run-1") == 0
