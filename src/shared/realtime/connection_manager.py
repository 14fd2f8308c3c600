"""
Per-user WebSocket registry used to push chat messages, read receipts and
notifications to connected clients.

Delivery is best effort and at most once: a frame is scheduled on every live
socket of the recipient and nothing is queued for offline users. Clients
that miss a push catch up through the REST endpoints.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

USER_DESTINATION_PREFIX = "/user"

QUEUE_MESSAGES = "/queue/messages"
QUEUE_READ_RECEIPTS = "/queue/read-receipts"
QUEUE_NOTIFICATIONS = "/queue/notifications"
QUEUE_NOTIFICATION_COUNT = "/queue/notification-count"
QUEUE_ERRORS = "/queue/errors"


def build_frame(destination: str, payload: Any) -> Dict[str, Any]:
    """Envelope sent to clients: {"destination": "/user/queue/...", "payload": ...}."""
    return {
        "destination": f"{USER_DESTINATION_PREFIX}{destination}",
        "payload": jsonable_encoder(payload),
    }


class ConnectionManager:
    """Tracks live sockets per user id and schedules pushes onto them."""

    def __init__(self):
        self.active_connections: Dict[int, List[WebSocket]] = {}
        # Event loop each socket was accepted on, keyed by id(websocket)
        self._socket_loops: Dict[int, asyncio.AbstractEventLoop] = {}
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)
        self._socket_loops[id(websocket)] = asyncio.get_running_loop()
        logging.info(f"WebSocket connected for user {user_id} ({len(self.active_connections[user_id])} open)")

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self.active_connections.get(user_id, [])
        remaining = [ws for ws in sockets if ws is not websocket]
        if len(remaining) == len(sockets):
            return

        self._socket_loops.pop(id(websocket), None)
        if remaining:
            self.active_connections[user_id] = remaining
        else:
            self.active_connections.pop(user_id, None)
        logging.info(f"WebSocket disconnected for user {user_id}")

    def send_to_user(self, user_id: int, destination: str, payload: Any) -> bool:
        """
        Schedule a push to every live socket of a user.

        Callable from sync code, both inside the event loop and from worker
        threads. Never raises.

        Returns:
            True if at least one socket was targeted, False if the user is offline
        """
        sockets = list(self.active_connections.get(user_id, []))
        if not sockets:
            return False

        try:
            frame = build_frame(destination, payload)
        except Exception as e:
            logging.warning(f"Could not encode push for user {user_id} on {destination}: {str(e)}")
            return False

        scheduled = False
        for websocket in sockets:
            scheduled = self._schedule(user_id, websocket, frame) or scheduled
        return scheduled

    def _schedule(self, user_id: int, websocket: WebSocket, frame: Dict[str, Any]) -> bool:
        socket_loop = self._socket_loops.get(id(websocket))
        if socket_loop is None or socket_loop.is_closed():
            self.disconnect(user_id, websocket)
            return False

        try:
            running_loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        coro = self._send(user_id, websocket, frame)
        try:
            if running_loop is socket_loop:
                task = socket_loop.create_task(coro)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            else:
                asyncio.run_coroutine_threadsafe(coro, socket_loop)
        except RuntimeError as e:
            coro.close()
            logging.warning(f"Could not schedule push to user {user_id}: {str(e)}")
            self.disconnect(user_id, websocket)
            return False
        return True

    async def _send(self, user_id: int, websocket: WebSocket, frame: Dict[str, Any]) -> None:
        try:
            await websocket.send_json(frame)
        except Exception as e:
            logging.warning(f"Push to user {user_id} on {frame.get('destination')} failed: {str(e)}")
            self.disconnect(user_id, websocket)


manager = ConnectionManager()


def get_push() -> ConnectionManager:
    """Dependency returning the process-wide push channel."""
    return manager
