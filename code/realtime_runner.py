import json
import logging

from aiohttp import WSMsgType, web

from ReplayDispatcher import ReplayDispatcher
from RouteStore import RouteStore
from config import EVENT_NEW_POINTS, HOST, PORT, REPLAY_DELAY_S
from ws_bus import ConnectionRegistry

logger = logging.getLogger(__name__)


async def handle_message(app: web.Application, conn_id: str, raw: str) -> None:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("non-json frame from %s: %.80r", conn_id, raw)
        return
    if not isinstance(msg, dict):
        logger.warning("unexpected frame from %s: %.80r", conn_id, raw)
        return

    event = msg.get("event")
    if event == EVENT_NEW_POINTS:
        app["dispatcher"].start(conn_id, msg.get("data"))
    else:
        logger.warning("unknown event %r from %s", event, conn_id)


async def ws_handler(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    registry: ConnectionRegistry = request.app["registry"]
    conn_id = registry.register(ws)
    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                await handle_message(request.app, conn_id, msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("connection %s closed with exception %s", conn_id, ws.exception())
    finally:
        registry.unregister(conn_id)
    return ws


async def _on_shutdown(app: web.Application) -> None:
    registry: ConnectionRegistry = app["registry"]
    registry.cancel_all()
    for ws in list(registry.clients.values()):
        await ws.close()


def create_app(store: RouteStore, delay_s: float = REPLAY_DELAY_S) -> web.Application:
    app = web.Application()
    registry = ConnectionRegistry()
    app["registry"] = registry
    app["dispatcher"] = ReplayDispatcher(store, registry, delay_s=delay_s)
    app.router.add_get("/ws", ws_handler)
    app.on_shutdown.append(_on_shutdown)
    return app


def run_server(store: RouteStore, host: str = HOST, port: int = PORT,
               delay_s: float = REPLAY_DELAY_S) -> None:
    app = create_app(store, delay_s=delay_s)
    logger.info("replay server on ws://%s:%d/ws (delay %.3fs)", host, port, delay_s)
    web.run_app(app, host=host, port=port, print=None)
