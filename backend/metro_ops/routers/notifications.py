import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from jose import JWTError
from metro_ops.core.security import decode_identity
from metro_ops.core.websocket import manager

logger = logging.getLogger(__name__)

router = APIRouter()

@router.websocket("/ws/reviewers")
async def reviewer_websocket(websocket: WebSocket, token: Optional[str] = None):
    """Push incident events to captains and admins as reports move along."""
    try:
        identity = decode_identity(token or "")
    except (JWTError, ValueError) as e:
        logger.info("Refused reviewer websocket: %s", e)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not identity.is_reviewer:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, identity.role)
    logger.info("%s %s connected for incident events", identity.role.value, identity.id)
    try:
        while True:
            # Reviewers only listen; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("%s %s disconnected", identity.role.value, identity.id)
        manager.disconnect(websocket)
