import logging
from typing import Callable, Dict, List

from fastapi import WebSocket

from revision_planner.business.services.problem_store import ProblemStore
from revision_planner.business.services.read_model import build_snapshot

logger = logging.getLogger("app").getChild("websocket")


class ProblemFeedManager:
    """
    Manager for problem feed WebSocket connections.
    Each connection is subscribed to its owner's problem store and receives a
    full snapshot on connect and after every change.
    """

    def __init__(self):
        # Map of user_id to list of connected WebSockets
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._unsubscribers: Dict[WebSocket, Callable[[], None]] = {}

    async def connect(self, websocket: WebSocket, store: ProblemStore):
        """
        Accept a WebSocket and subscribe it to the store.
        A user can have multiple active connections (e.g., multiple browser tabs).
        """
        await websocket.accept()
        user_id = str(store.owner_id)
        self.active_connections.setdefault(user_id, []).append(websocket)

        async def push(problems):
            message = build_snapshot(problems, store.now(), store.error)
            await websocket.send_json(message.model_dump(mode="json"))

        self._unsubscribers[websocket] = await store.subscribe(push)
        logger.info(
            f"WebSocket connected for user {user_id}. Total connections: {len(self.active_connections[user_id])}"
        )

    def disconnect(self, websocket: WebSocket, user_id: str):
        """
        Unsubscribe and forget a WebSocket of a user.
        """
        unsubscribe = self._unsubscribers.pop(websocket, None)
        if unsubscribe is not None:
            unsubscribe()

        if user_id in self.active_connections:
            if websocket in self.active_connections[user_id]:
                self.active_connections[user_id].remove(websocket)
                logger.info(
                    f"WebSocket disconnected for user {user_id}. Remaining connections: {len(self.active_connections[user_id])}"
                )

            # Clean up if no more connections for this user
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]

    def connection_count(self, user_id: str) -> int:
        return len(self.active_connections.get(user_id, []))

    def total_connections(self) -> int:
        return sum(len(websockets) for websockets in self.active_connections.values())

    async def close_all(self):
        for user_id, websockets in list(self.active_connections.items()):
            for websocket in list(websockets):
                try:
                    await websocket.close()
                except Exception as e:
                    logger.debug(f"Error closing WebSocket of user {user_id}: {str(e)}")
                self.disconnect(websocket, user_id)


# Create a singleton instance
manager = ProblemFeedManager()
