"""
Per-connection outbound queues for WebSocket clients
The hub enqueues without awaiting; a writer task per socket drains the queue.
"""
import asyncio
import logging
from typing import Any, Dict, Set

from aiohttp import web

logger = logging.getLogger("voxhub")

# Pending events per client before a stalled reader is disconnected
DEFAULT_QUEUE_SIZE = 256


class ConnectionManager:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._queues: Dict[str, asyncio.Queue] = {}
        self._writers: Dict[str, asyncio.Task] = {}
        self._sockets: Dict[str, web.WebSocketResponse] = {}
        self._closers: Set[asyncio.Task] = set()

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._queues

    def __len__(self) -> int:
        return len(self._queues)

    def open(self, client_id: str, ws: web.WebSocketResponse) -> None:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues[client_id] = queue
        self._sockets[client_id] = ws
        self._writers[client_id] = asyncio.create_task(self._pump(client_id, ws, queue))

    async def close(self, client_id: str) -> None:
        self._queues.pop(client_id, None)
        self._sockets.pop(client_id, None)
        writer = self._writers.pop(client_id, None)
        if writer is None:
            return
        writer.cancel()
        # wait() does not raise the writer's cancellation but still lets ours through
        await asyncio.wait([writer])

    def send(self, client_id: str, event: str, data: Any) -> None:
        """Fire-and-forget; events for closed connections are dropped"""
        self._enqueue(client_id, {"type": event, "data": data})

    def send_text(self, client_id: str, text: str) -> None:
        self._enqueue(client_id, text)

    def _enqueue(self, client_id: str, message) -> None:
        queue = self._queues.get(client_id)
        if queue is None:
            logger.debug("No connection for %s, dropping %r", client_id, message)
            return
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for %s, closing connection", client_id)
            self._drop(client_id)

    def _drop(self, client_id: str) -> None:
        """Stop queueing for a stalled client and close its socket"""
        self._queues.pop(client_id, None)
        ws = self._sockets.pop(client_id, None)
        if ws is None:
            return
        task = asyncio.create_task(ws.close(code=1008, message=b"outbound queue full"))
        self._closers.add(task)
        task.add_done_callback(self._closers.discard)

    async def _pump(self, client_id: str, ws: web.WebSocketResponse, queue: asyncio.Queue):
        while True:
            message = await queue.get()
            try:
                if isinstance(message, str):
                    await ws.send_str(message)
                else:
                    await ws.send_json(message)
            except Exception as e:
                # one dead socket must not stall the others
                logger.debug("Failed to send to %s: %s", client_id, e)
