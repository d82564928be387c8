import asyncio
import logging
import uuid
from typing import Any, Dict, List, Set

from aiohttp import web

logger = logging.getLogger(__name__)


def create_uuid():
    return str(uuid.uuid4())


def frame(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}


class ConnectionRegistry:
    """
    Connected websockets by connection id, plus the replay tasks each
    connection owns. Unregistering a connection cancels its tasks.
    """

    def __init__(self):
        self.clients: Dict[str, web.WebSocketResponse] = {}
        self.tasks: Dict[str, Set[asyncio.Task]] = {}

    def register(self, ws: web.WebSocketResponse) -> str:
        conn_id = create_uuid()
        self.clients[conn_id] = ws
        self.tasks[conn_id] = set()
        logger.info("client %s connected, total clients: %d", conn_id, len(self.clients))
        return conn_id

    def unregister(self, conn_id: str) -> None:
        self.clients.pop(conn_id, None)
        for task in self.tasks.pop(conn_id, set()):
            task.cancel()
        logger.info("client %s disconnected, total clients: %d", conn_id, len(self.clients))

    def track(self, conn_id: str, task: asyncio.Task) -> None:
        if conn_id not in self.tasks:
            # connection already gone
            task.cancel()
            return
        owned = self.tasks[conn_id]
        owned.add(task)
        task.add_done_callback(owned.discard)

    def connection_ids(self) -> List[str]:
        return list(self.clients)

    def __len__(self) -> int:
        return len(self.clients)

    async def send(self, conn_id: str, event: str, data: Any) -> bool:
        ws = self.clients.get(conn_id)
        if ws is None or ws.closed:
            logger.debug("skip %s to closed connection %s", event, conn_id)
            return False
        await ws.send_json(frame(event, data))
        return True

    async def broadcast_except(self, conn_id: str, event: str, data: Any) -> int:
        targets = [cid for cid in self.clients if cid != conn_id]
        if not targets:
            return 0
        results = await asyncio.gather(
            *[self.send(cid, event, data) for cid in targets],
            return_exceptions=True,
        )
        sent = 0
        for cid, res in zip(targets, results):
            if isinstance(res, BaseException):
                logger.warning("broadcast %s to %s failed: %r", event, cid, res)
            elif res:
                sent += 1
        return sent

    def cancel_all(self) -> None:
        for owned in self.tasks.values():
            for task in owned:
                task.cancel()
