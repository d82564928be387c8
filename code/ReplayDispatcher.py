import asyncio
import logging
from numbers import Real
from typing import Any, Awaitable, Callable, List, Optional

from PointEvent import PointEvent
from Route import Segment
from RouteStore import RouteStore
from config import EVENT_POINTS_BROADCAST, EVENT_POINTS_ERROR, REPLAY_DELAY_S, points_event_for
from errors import InvalidPayload, ReplayError
from ws_bus import ConnectionRegistry

logger = logging.getLogger(__name__)


def validate_payload(payload: Any) -> Any:
    """Return the payload's route_id or raise InvalidPayload."""
    if not isinstance(payload, dict):
        raise InvalidPayload(f"payload is not an object: {payload!r}")
    route_id = payload.get("route_id")
    if route_id is None or route_id == "":
        raise InvalidPayload(f"payload has no route_id: {payload!r}")
    if isinstance(route_id, bool) or not isinstance(route_id, (str, Real)):
        raise InvalidPayload(f"route_id must be a string or number: {route_id!r}")
    return route_id


class ReplayDispatcher:
    """
    Replays a route's segment coordinates: every point goes to the requesting
    connection on its own route channel and to everybody else on the shared
    channel, with a fixed pause after each point.
    """

    def __init__(self, store: RouteStore, registry: ConnectionRegistry,
                 delay_s: float = REPLAY_DELAY_S,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.store = store
        self.registry = registry
        self.delay_s = delay_s
        self._sleep = sleep

    def start(self, conn_id: str, payload: Any) -> Optional[asyncio.Task]:
        try:
            route_id = validate_payload(payload)
        except InvalidPayload as e:
            logger.error("invalid payload from %s: %s", conn_id, e)
            return None

        task = asyncio.create_task(self._run(conn_id, route_id))
        self.registry.track(conn_id, task)
        return task

    async def _run(self, conn_id: str, route_id: Any) -> None:
        try:
            await self.handle(conn_id, route_id)
        except asyncio.CancelledError:
            logger.info("replay of %s for %s cancelled", route_id, conn_id)
            raise
        except Exception:
            logger.exception("replay of %s for %s failed", route_id, conn_id)

    async def handle(self, conn_id: str, route_id: Any) -> int:
        logger.info("route_id %s requested by %s", route_id, conn_id)
        try:
            route = await asyncio.to_thread(self.store.find_route, route_id)
            segments = route.segments()
        except ReplayError as e:
            # report the id the client sent, not the normalised one
            e.route_id = route_id
            logger.warning("%s for %s: %s", e.kind, conn_id, e)
            await self.registry.send(conn_id, EVENT_POINTS_ERROR, e.to_dict())
            return 0
        return await self.replay(conn_id, route_id, segments)

    async def replay(self, conn_id: str, route_id: Any, segments: List[Segment]) -> int:
        unicast = points_event_for(route_id)
        emitted = 0
        for seg in segments:
            for pos in (seg.start, seg.end):
                point = PointEvent.at(route_id, pos).to_dict()

                await self.registry.send(conn_id, unicast, point)
                logger.debug("emitted %s %s", unicast, point)
                await self.registry.broadcast_except(conn_id, EVENT_POINTS_BROADCAST, point)
                logger.debug("broadcast %s %s", EVENT_POINTS_BROADCAST, point)

                emitted += 1
                await self._sleep(self.delay_s)

        logger.info("replayed %d points of %s for %s", emitted, route_id, conn_id)
        return emitted
