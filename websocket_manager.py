"""
WebSocket Connection Manager for Real-Time Updates
Pushes donation events (new pending entries, approvals) to connected admin clients.
"""

from typing import Dict, Set
from fastapi import WebSocket
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        # {admin_username: set of WebSocket connections}
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, admin_username: str):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        self.active_connections.setdefault(admin_username, set()).add(websocket)

        logger.info(f"Admin '{admin_username}' connected. Total connections: {self.get_connection_count()}")

        await self.send_personal_message(
            {
                "type": "connection_established",
                "message": "Real-time connection established",
                "timestamp": datetime.now().isoformat()
            },
            websocket
        )

    def disconnect(self, websocket: WebSocket, admin_username: str):
        """Remove a WebSocket connection."""
        connections = self.active_connections.get(admin_username)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            del self.active_connections[admin_username]

        logger.info(f"Admin '{admin_username}' disconnected. Total connections: {self.get_connection_count()}")

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send a message to a specific WebSocket connection."""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast(self, message: dict):
        """Send a message to every connected admin client, dropping dead connections."""
        disconnected = []

        for admin_username, connections in self.active_connections.items():
            for connection in connections.copy():
                try:
                    await connection.send_json(message)
                except Exception as e:
                    logger.error(f"Error broadcasting to {admin_username}: {e}")
                    disconnected.append((connection, admin_username))

        for connection, admin_username in disconnected:
            self.disconnect(connection, admin_username)

    async def broadcast_donation_event(self, event_type: str, donation_data: dict):
        """Broadcast a donation lifecycle event such as 'donation_pending' or 'donation_approved'."""
        message = {
            "type": event_type,
            "data": donation_data,
            "timestamp": datetime.now().isoformat()
        }
        await self.broadcast(message)
        logger.info(f"Broadcasted {event_type} for donation {donation_data.get('id')}")

    def get_connection_count(self) -> int:
        return sum(len(c) for c in self.active_connections.values())

    def get_connected_admins(self) -> list:
        return list(self.active_connections.keys())


# Global connection manager instance
manager = ConnectionManager()
