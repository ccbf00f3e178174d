"""
Live rooms over WebSocket.

Rooms:
    user:{user_id}                 joined automatically on connect
    joint-account:{account_id}     joined on request (membership checked by the caller),
                                   left on request or evicted when the membership ends

Frames are JSON: {"event": "...", "data": {...}}. Delivery is best effort;
a socket that fails to receive is dropped.

``emit`` may be called from any thread: sends are scheduled on the event loop
that accepted the connections.
"""
import asyncio
import logging
import threading
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def joint_account_room(joint_account_id: str) -> str:
    return f"joint-account:{joint_account_id}"


class LiveRoomHub:
    def __init__(self):
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._owners: dict[WebSocket, str] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        with self._lock:
            self._owners[websocket] = user_id
            self._rooms[user_room(user_id)].add(websocket)
        logger.info("Live connection opened for user %s", user_id)

    def join(self, websocket: WebSocket, room: str) -> None:
        with self._lock:
            self._rooms[room].add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def evict(self, room: str, user_id: str) -> int:
        """Drop every socket of ``user_id`` from ``room``. Returns how many."""
        with self._lock:
            members = self._rooms.get(room)
            if not members:
                return 0
            owned = [ws for ws in members if self._owners.get(ws) == user_id]
            for websocket in owned:
                members.discard(websocket)
            if not members:
                del self._rooms[room]
        if owned:
            logger.info("Evicted %d live connection(s) of user %s from %s", len(owned), user_id, room)
        return len(owned)

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            user_id = self._owners.pop(websocket, None)
            for room in [r for r, members in self._rooms.items() if websocket in members]:
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]
        if user_id is not None:
            logger.info("Live connection closed for user %s", user_id)

    def rooms_of(self, websocket: WebSocket) -> set[str]:
        with self._lock:
            return {room for room, members in self._rooms.items() if websocket in members}

    def emit(self, room: str, event: str, data: dict, exclude_user_id: str | None = None) -> int:
        """
        Schedule a frame to every socket in ``room`` not owned by ``exclude_user_id``.

        Returns the number of sockets targeted.
        """
        with self._lock:
            targets = [
                ws for ws in self._rooms.get(room, ())
                if exclude_user_id is None or self._owners.get(ws) != exclude_user_id
            ]
        if not targets or self._loop is None or self._loop.is_closed():
            return 0

        message = {"event": event, "data": data}
        asyncio.run_coroutine_threadsafe(self._send_all(targets, message), self._loop)
        return len(targets)

    def emit_to_user(self, user_id: str, event: str, data: dict) -> int:
        return self.emit(user_room(user_id), event, data)

    def emit_to_joint_account(
        self, joint_account_id: str, event: str, data: dict, exclude_user_id: str | None = None
    ) -> int:
        return self.emit(joint_account_room(joint_account_id), event, data, exclude_user_id)

    async def _send_all(self, targets: list[WebSocket], message: dict) -> None:
        for websocket in targets:
            try:
                await websocket.send_json(message)
            except Exception:
                logger.warning("Dropping live connection after failed send", exc_info=True)
                self.disconnect(websocket)
