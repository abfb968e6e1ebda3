import logging
from typing import Dict, Iterable, List
from fastapi import WebSocket, WebSocketDisconnect
from .security import Role

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Tracks reviewer websockets (captains and admins) by role."""

    def __init__(self):
        self.connections: Dict[Role, List[WebSocket]] = {
            Role.CAPTAIN: [],
            Role.ADMIN: [],
        }

    async def connect(self, websocket: WebSocket, role: Role):
        await websocket.accept()
        self.connections[role].append(websocket)

    def disconnect(self, websocket: WebSocket):
        for sockets in self.connections.values():
            if websocket in sockets:
                sockets.remove(websocket)

    async def broadcast(self, message: dict, roles: Iterable[Role]):
        for role in roles:
            for connection in list(self.connections.get(role, [])):
                try:
                    await connection.send_json(message)
                except (RuntimeError, WebSocketDisconnect) as e:
                    # socket closed underneath us
                    logger.info("Dropping closed %s websocket: %s", role.value, e)
                    self.disconnect(connection)

manager = ConnectionManager()
