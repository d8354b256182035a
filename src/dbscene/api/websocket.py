import asyncio
import logging
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..core.cache import TrackedObject

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


class ConnectionManager:
    """Pushes cache changes to connected WebSocket clients"""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket):
        """Accept and store new connection"""
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self.active_connections.add(websocket)
        logger.info(f"Client connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove stored connection"""
        if websocket in self.active_connections:
            self.active_connections.discard(websocket)
            logger.info(
                f"Client disconnected. Total connections: {len(self.active_connections)}"
            )

    async def broadcast(self, message: Dict[str, Any]):
        """Broadcast a JSON message to all clients"""
        dead_connections = set()
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
            except WebSocketDisconnect:
                dead_connections.add(websocket)
            except Exception as e:
                logger.error(f"Failed to send message: {e}")
                dead_connections.add(websocket)

        for ws in dead_connections:
            await self.disconnect(ws)

    def on_cache_change(self, change: str, obj: TrackedObject) -> None:
        """Cache observer; safe to call from any thread"""
        loop = self._loop
        if loop is None or loop.is_closed() or not self.active_connections:
            return
        message = {"type": "object", "change": change, "data": obj.to_dict()}
        loop.call_soon_threadsafe(self._start_broadcast, message)

    def _start_broadcast(self, message: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self.broadcast(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Stream object updates; the first message is the full object table"""
    controller = getattr(websocket.app.state, "controller", None)
    manager: ConnectionManager = websocket.app.state.connections
    if controller is None:
        await websocket.close(code=1013)
        return

    await manager.connect(websocket)
    try:
        await websocket.send_json(
            {
                "type": "state",
                "data": {
                    **controller.get_state(),
                    "objects": [obj.to_dict() for obj in controller.get_objects()],
                },
            }
        )
        while True:
            # Clients only listen; incoming text keeps the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
