"""WebSocket connection manager for live run logs."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from bddrunner.core.log_buffer import LogStore

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 5.0


class ConnectionManager:
    """Manages WebSocket connections grouped by run id."""

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket, run_id: str) -> None:
        await ws.accept()
        self._connections.setdefault(run_id, set()).add(ws)
        logger.debug("ws: connected %s", run_id)

    def disconnect(self, ws: WebSocket, run_id: str) -> None:
        conns = self._connections.get(run_id)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[run_id]
        logger.debug("ws: disconnected %s", run_id)

    def subscribers(self, run_id: str) -> int:
        return len(self._connections.get(run_id, ()))

    async def broadcast(self, run_id: str, data: dict[str, Any]) -> None:
        """Send to every subscriber of the run; a client that errors or stalls is dropped."""
        conns = self._connections.get(run_id)
        if not conns:
            return
        message = json.dumps(data)
        dead: list[WebSocket] = []
        for ws in list(conns):
            try:
                await asyncio.wait_for(ws.send_text(message), timeout=SEND_TIMEOUT_SECONDS)
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.discard(ws)
        if not conns:
            self._connections.pop(run_id, None)


ws_manager = ConnectionManager()


async def ws_run_logs_endpoint(ws: WebSocket, run_id: str, logs: LogStore, offset: int = 0) -> None:
    """Send the buffered backlog from *offset*, then keep the socket open for live lines."""
    await ws_manager.connect(ws, run_id)
    try:
        chunk = logs.read(run_id, offset)
        start = max(chunk.total - len(chunk.lines), 0)
        for i, line in enumerate(chunk.lines):
            await ws.send_text(json.dumps({"offset": start + i, "line": line}))
        while True:
            # Client pings keep the connection alive
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(ws, run_id)
