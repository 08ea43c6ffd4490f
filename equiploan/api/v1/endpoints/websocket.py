# equiploan/api/v1/endpoints/websocket.py
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger

from equiploan.core.security import get_user_from_token
from equiploan.models.user import utc_now

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Live channel: per-user ``notification`` messages and broadcast ``borrowing:*`` / ``item:*`` events."""
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="No token provided")
        return
    user = await get_user_from_token(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication failed")
        return

    registry = websocket.app.state.services.registry
    user_id = str(user.id)
    await registry.connect(websocket, user_id)
    try:
        await websocket.send_json({
            "type": "connection",
            "data": {"message": "WebSocket connected successfully", "user_id": user_id, "role": user.role.value},
        })
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong", "data": {"timestamp": utc_now().isoformat()}})
            else:
                logger.debug(f"Ignoring websocket message from {user_id}: {message}")
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        logger.warning(f"Malformed websocket message from {user_id}: {e}")
    finally:
        registry.disconnect(websocket, user_id)
