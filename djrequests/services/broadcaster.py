"""
Realtime fan-out to WebSocket viewers of an event.

- Each connection is subscribed to at most one event slug (last subscribe wins)
- Messages are NOT stored; viewers that miss one re-fetch over HTTP
- Delivery is best-effort: a failed send drops the connection and never
  propagates to the mutation that triggered the broadcast
"""

import time
import logging
import threading
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)

QUEUE_UPDATE = "queue:update"
REQUEST_ADDED = "request:added"
VISIBILITY_TOGGLE = "visibility:toggle"
REQUEST_PLAYED = "request:played"


def now_ms() -> int:
    return int(time.time() * 1000)


class ConnectionManager:
    """Registry of open connections keyed by the event slug they watch"""

    def __init__(self):
        self._lock = threading.Lock()
        # slug -> {id(websocket): websocket}
        self._subscriptions: Dict[str, Dict[int, WebSocket]] = {}
        # id(websocket) -> slug
        self._slug_by_connection: Dict[int, str] = {}

    def subscribe(self, websocket: WebSocket, event_slug: str) -> None:
        key = id(websocket)
        with self._lock:
            previous = self._slug_by_connection.get(key)
            if previous is not None and previous != event_slug:
                self._discard(previous, key)
            self._subscriptions.setdefault(event_slug, {})[key] = websocket
            self._slug_by_connection[key] = event_slug
        logger.info("Client subscribed to event: %s", event_slug)

    def unsubscribe(self, websocket: WebSocket) -> None:
        key = id(websocket)
        with self._lock:
            slug = self._slug_by_connection.pop(key, None)
            if slug is not None:
                self._discard(slug, key)

    def _discard(self, slug: str, key: int) -> None:
        connections = self._subscriptions.get(slug)
        if connections is None:
            return
        connections.pop(key, None)
        if not connections:
            del self._subscriptions[slug]

    def subscribers(self, event_slug: str) -> List[WebSocket]:
        with self._lock:
            return list(self._subscriptions.get(event_slug, {}).values())

    def subscribed_slug(self, websocket: WebSocket) -> Optional[str]:
        with self._lock:
            return self._slug_by_connection.get(id(websocket))

    async def broadcast_to_event(self, event_slug: str, message: Dict[str, Any]):
        """Send a message to every open connection subscribed to the slug"""
        payload = {**message, "timestamp": now_ms()}
        delivered = 0

        for websocket in self.subscribers(event_slug):
            if (
                websocket.client_state != WebSocketState.CONNECTED
                or websocket.application_state != WebSocketState.CONNECTED
            ):
                continue
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                logger.debug(
                    "Dropping connection for %s after failed send: %s", event_slug, e
                )
                self.unsubscribe(websocket)

        return delivered

    async def broadcast_queue_update(self, event_slug: str):
        return await self.broadcast_to_event(event_slug, {"type": QUEUE_UPDATE})

    async def broadcast_new_request(self, event_slug: str, request: Dict[str, Any]):
        return await self.broadcast_to_event(
            event_slug, {"type": REQUEST_ADDED, "request": request}
        )

    async def broadcast_visibility_toggle(self, event_slug: str, visible: bool):
        return await self.broadcast_to_event(
            event_slug, {"type": VISIBILITY_TOGGLE, "visible": visible}
        )

    async def broadcast_request_played(self, event_slug: str, request_id: str):
        return await self.broadcast_to_event(
            event_slug, {"type": REQUEST_PLAYED, "requestId": request_id}
        )


# Process-local registry shared by the HTTP routers and the /ws endpoint
manager = ConnectionManager()
