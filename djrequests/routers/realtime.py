import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from djrequests.services.broadcaster import now_ms, manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def event_stream(websocket: WebSocket):
    """
    Viewers send {"type": "subscribe", "eventSlug": ...} once connected and
    then receive queue:update, request:added, visibility:toggle and
    request:played broadcasts for that event.
    """
    await websocket.accept()
    logger.info("WebSocket client connected")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring malformed WebSocket message")
                continue

            if (
                isinstance(data, dict)
                and data.get("type") == "subscribe"
                and isinstance(data.get("eventSlug"), str)
                and data["eventSlug"]
            ):
                manager.subscribe(websocket, data["eventSlug"])
                await websocket.send_json(
                    {
                        "type": "subscribed",
                        "eventSlug": data["eventSlug"],
                        "timestamp": now_ms(),
                    }
                )
            else:
                logger.warning("Ignoring unsupported WebSocket message")
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        manager.unsubscribe(websocket)
