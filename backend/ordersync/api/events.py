"""
Fan-out of service events to connected clients.

Two transports: WebSocket stations (/ws/{station}) receive JSON messages,
server-sent event subscribers (/events) receive "event: <name>" frames.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Set

from fastapi import WebSocket

from ordersync.notifications import NOTIFICATIONS_UPDATED, ORDERS_UPDATED, NotificationHub

logger = logging.getLogger(__name__)

STATIONS = ("waiter", "kitchen")
FORWARDED_EVENTS = (ORDERS_UPDATED, NOTIFICATIONS_UPDATED)
SSE_QUEUE_SIZE = 100


def format_sse(event: str) -> str:
    """Encode one server-sent event frame."""
    return f"event: {event}\ndata: {{}}\n\n"


class EventBroadcaster:
    """Forwards NotificationHub events to WebSocket stations and SSE streams."""

    def __init__(self):
        self.station_connections: Dict[str, List[WebSocket]] = {station: [] for station in STATIONS}
        self._sse_queues: Set[asyncio.Queue] = set()
        self._tasks: Set[asyncio.Task] = set()

    def attach(self, hub: NotificationHub) -> None:
        for event in FORWARDED_EVENTS:
            hub.subscribe(event, lambda event=event: self.dispatch(event))

    def dispatch(self, event: str) -> None:
        for queue in list(self._sse_queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping %s for a slow event stream subscriber", event)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        for station in STATIONS:
            if not self.station_connections[station]:
                continue
            task = loop.create_task(self.broadcast_to_station(station, {"action": event}))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def connect(self, station: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.station_connections[station].append(websocket)
        logger.info("%s connected (%d clients)", station, len(self.station_connections[station]))

    def disconnect(self, station: str, websocket: WebSocket) -> None:
        if websocket in self.station_connections.get(station, []):
            self.station_connections[station].remove(websocket)
        logger.info("%s disconnected (%d clients left)", station, len(self.station_connections.get(station, [])))

    async def broadcast_to_station(self, station: str, message: Dict) -> None:
        """Send JSON message to all connected clients of a station, remove dead connections."""
        dead = []
        for ws in list(self.station_connections.get(station, [])):
            try:
                await ws.send_json(message)
            except Exception as exc:
                logger.debug("Dropping dead %s connection: %r", station, exc)
                dead.append(ws)
        # Sockets may have connected while we were sending; only drop the dead ones.
        for ws in dead:
            self.disconnect(station, ws)

    def open_stream(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SSE_QUEUE_SIZE)
        self._sse_queues.add(queue)
        return queue

    def close_stream(self, queue: asyncio.Queue) -> None:
        self._sse_queues.discard(queue)

    @property
    def stream_count(self) -> int:
        return len(self._sse_queues)

    async def stream(self, queue: asyncio.Queue) -> AsyncIterator[str]:
        """Yield SSE frames from queue until the consumer goes away."""
        try:
            while True:
                event = await queue.get()
                yield format_sse(event)
        finally:
            self.close_stream(queue)
