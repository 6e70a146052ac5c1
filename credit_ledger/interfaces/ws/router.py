"""WebSocket endpoint streaming a member's change feed."""
import logging

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from credit_ledger.core.security import context_from_token, decode_access_token
from credit_ledger.domain.notifications.feed import ADMIN_CHANNEL

logger = logging.getLogger(__name__)

router = APIRouter()

MESSAGE_HEARTBEAT = "heartbeat"
MESSAGE_READY = "ready"


@router.websocket("/ws/feed")
async def feed_socket(websocket: WebSocket, token: str = Query(...)):
    container = websocket.app.state.container
    manager = websocket.app.state.ws_manager
    try:
        token_data = decode_access_token(token, container.settings)
    except HTTPException as exc:
        logger.error("WebSocket token invalid: %s", exc.detail)
        await websocket.close(code=1008, reason="Token validation failed")
        return

    context = context_from_token(token_data, container.settings)
    channels = [context.user_id]
    if context.is_admin:
        channels.append(ADMIN_CHANNEL)

    connection_id = await manager.connect(websocket, context.user_id, channels)
    try:
        await manager.send_message(connection_id, {"type": MESSAGE_READY, "data": {"channels": channels}})
        while True:
            await websocket.receive_text()
            manager.update_heartbeat(connection_id)
            await manager.send_message(connection_id, {"type": MESSAGE_HEARTBEAT})
    except WebSocketDisconnect:
        logger.info("Feed user %s disconnected", context.user_id)
    finally:
        await manager.disconnect(connection_id)
