# equiploan/core/websocket_manager.py
from typing import Any, Dict, List

from fastapi import WebSocket
from loguru import logger


class ConnectionRegistry:
    """Open notification sockets keyed by user id. A user may have several tabs open."""

    def __init__(self):
        self.user_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self.user_connections.setdefault(user_id, []).append(websocket)
        logger.info(f"User {user_id} connected for notifications ({len(self.user_connections[user_id])} socket(s))")

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        sockets = self.user_connections.get(user_id)
        if not sockets:
            return
        if websocket in sockets:
            sockets.remove(websocket)
        if not sockets:
            del self.user_connections[user_id]
        logger.info(f"User {user_id} disconnected from notifications")

    def is_connected(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    async def send_to_user(self, user_id: str, message_type: str, data: Any) -> int:
        """Push to every socket the user has open; returns how many accepted the message."""
        delivered = 0
        for websocket in list(self.user_connections.get(user_id, [])):
            if await self._send(websocket, user_id, {"type": message_type, "data": data}):
                delivered += 1
        return delivered

    async def broadcast(self, message_type: str, data: Any) -> int:
        delivered = 0
        message = {"type": message_type, "data": data}
        for user_id, sockets in list(self.user_connections.items()):
            for websocket in list(sockets):
                if await self._send(websocket, user_id, message):
                    delivered += 1
        return delivered

    async def _send(self, websocket: WebSocket, user_id: str, message: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to push '{message['type']}' to user {user_id}: {e}. Dropping socket.")
            self.disconnect(websocket, user_id)
            return False
