"""WebSocket streams.

``/ws/queue/{entry_id}``  one customer's live status, with "up soon" notices
``/ws/queue``             the whole active line for the staff dashboard

Both accept the text frame ``ping`` and answer ``pong``. Server messages are
JSON objects ``{"event": ..., "data": ..., "timestamp": ...}``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from queueline.core.auth import extract_token, session_from_token
from queueline.core.config import settings
from queueline.core.exceptions import QueueError
from queueline.core.responses import list_response
from queueline.services.notification_service import check_notification
from queueline.services.queue_service import status_view

logger = logging.getLogger(__name__)

router = APIRouter()

CHANGED = "changed"
PING = "ping"
DISCONNECTED = "disconnected"


class ConnectionManager:
    """Tracks open sockets per channel and enforces a per-channel cap."""

    MAX_CONNECTIONS_PER_CHANNEL = 1000
    MAX_MESSAGE_SIZE = 65536  # 64KB

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str) -> bool:
        """Accept a WebSocket on a channel. Returns False if the channel is full."""
        if len(self.active_connections.get(channel, [])) >= self.MAX_CONNECTIONS_PER_CHANNEL:
            logger.warning(f"WebSocket connection rejected: channel '{channel}' at capacity")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return False

        await websocket.accept()
        self.active_connections.setdefault(channel, []).append(websocket)
        logger.debug(f"WebSocket connected to channel '{channel}'")
        return True

    def disconnect(self, websocket: WebSocket, channel: str):
        connections = self.active_connections.get(channel)
        if connections and websocket in connections:
            connections.remove(websocket)
            if not connections:
                del self.active_connections[channel]
        logger.debug(f"WebSocket disconnected from channel '{channel}'")

    def get_connection_count(self, channel: Optional[str] = None) -> int:
        if channel is not None:
            return len(self.active_connections.get(channel, []))
        return sum(len(conns) for conns in self.active_connections.values())


ws_manager = ConnectionManager()


def _message(event: str, data: Any = None) -> Dict[str, Any]:
    return {
        "event": event,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def _receive_loop(websocket: WebSocket, events: asyncio.Queue):
    """Forward client pings and the disconnect to the sending loop."""
    try:
        while True:
            data = await websocket.receive_text()
            if len(data) > ws_manager.MAX_MESSAGE_SIZE:
                logger.warning("WebSocket message too large, ignored")
                continue
            if data == "ping":
                events.put_nowait((PING, None))
    except WebSocketDisconnect:
        pass
    finally:
        events.put_nowait((DISCONNECTED, None))


@router.websocket("/queue/{entry_id}")
async def websocket_queue_entry(websocket: WebSocket, entry_id: str):
    """Customer status stream.

    Sends ``status`` whenever the entry or its rank changes, ``notification``
    when few enough parties remain ahead, and ``closed`` once the entry has
    left the line (completed, skipped or withdrawn), after which the socket
    is closed. Rank is computed from the list snapshot itself; the average
    serving time is read once when the socket opens.
    """
    service = websocket.app.state.queue_service
    subscriptions = websocket.app.state.subscriptions
    channel = f"entry-{entry_id}"
    if not await ws_manager.connect(websocket, channel):
        return

    events: asyncio.Queue = asyncio.Queue()
    receiver = asyncio.create_task(_receive_loop(websocket, events))
    # Rank depends on every waiting entry; each list snapshot carries it
    watch = subscriptions.subscribe_list(lambda entries: events.put_nowait((CHANGED, entries)))
    last_status: Optional[Dict[str, Any]] = None
    last_notice = None

    try:
        average = await service.average_serving_minutes()
        while True:
            kind, entries = await events.get()
            if kind == DISCONNECTED:
                break
            if kind == PING:
                await websocket.send_text("pong")
                continue

            view = status_view(entry_id, entries, average)
            if view is None:
                await websocket.send_json(_message("closed", {"id": entry_id}))
                await websocket.close()
                break

            data = view.model_dump(mode="json")
            if data != last_status:
                last_status = data
                await websocket.send_json(_message("status", data))

            notice = check_notification(view, settings.notify_threshold)
            if notice is not None and notice != last_notice:
                await websocket.send_json(_message("notification", notice.model_dump()))
            last_notice = notice
    except WebSocketDisconnect:
        pass
    except QueueError as e:
        logger.warning(f"WebSocket stream for {entry_id} stopped: {e.message}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    except Exception as e:
        logger.error(f"WebSocket error in {channel}: {e}", exc_info=True)
    finally:
        watch.unsubscribe()
        receiver.cancel()
        ws_manager.disconnect(websocket, channel)


@router.websocket("/queue")
async def websocket_queue_list(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    """Staff list stream. Requires a staff token (query string or cookie)."""
    if session_from_token(extract_token(websocket, token)) is None:
        logger.warning("WebSocket rejected: missing or invalid staff token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    subscriptions = websocket.app.state.subscriptions
    channel = "staff-queue"
    if not await ws_manager.connect(websocket, channel):
        return

    events: asyncio.Queue = asyncio.Queue()
    receiver = asyncio.create_task(_receive_loop(websocket, events))
    watch = subscriptions.subscribe_list(lambda entries: events.put_nowait((CHANGED, entries)))

    try:
        while True:
            kind, entries = await events.get()
            if kind == DISCONNECTED:
                break
            if kind == PING:
                await websocket.send_text("pong")
                continue
            items = [e.model_dump(mode="json") for e in entries]
            await websocket.send_json(_message("queue", list_response(items)))
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error in {channel}: {e}", exc_info=True)
    finally:
        watch.unsubscribe()
        receiver.cancel()
        ws_manager.disconnect(websocket, channel)
