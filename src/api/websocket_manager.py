"""WebSocket fan-out of pipeline run progress."""

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Manages WebSocket connections grouped by run id."""

    def __init__(self):
        self.connections: dict[str, list[WebSocket]] = {}

    async def connect(self, run_id: str, websocket: WebSocket) -> None:
        """Accept a WebSocket connection and subscribe it to a run."""
        await websocket.accept()
        self.connections.setdefault(run_id, []).append(websocket)

    async def broadcast(self, run_id: str, message: dict) -> None:
        """Send a message to every subscriber of a run.

        Sockets that fail to receive are dropped from the pool.
        """
        disconnected = []
        for ws in self.connections.get(run_id, []):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping WebSocket for run {run_id}: {e}")
                disconnected.append(ws)

        for ws in disconnected:
            self.disconnect(run_id, ws)

    def disconnect(self, run_id: str, websocket: WebSocket) -> None:
        """Remove a WebSocket from the connection pool."""
        sockets = self.connections.get(run_id)
        if sockets and websocket in sockets:
            sockets.remove(websocket)
        if sockets == []:
            self.connections.pop(run_id, None)

    def cleanup(self, run_id: str) -> None:
        """Remove all connections for a run."""
        self.connections.pop(run_id, None)

    def subscriber_count(self, run_id: str) -> int:
        return len(self.connections.get(run_id, []))
