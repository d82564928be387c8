import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Protocol

from Route import Route
from errors import AmbiguousRoute, RouteNotFound, RouteStoreError

logger = logging.getLogger(__name__)


class RouteStore(Protocol):
    def find_route(self, route_id: Any) -> Route: ...


class InMemoryRouteStore:
    def __init__(self, *routes: Route):
        self._routes: Dict[str, Route] = {}
        for r in routes:
            self.add(r)

    def add(self, route: Route) -> None:
        if route.route_id in self._routes:
            raise ValueError(f"duplicate route id: {route.route_id}")
        self._routes[route.route_id] = route

    def find_route(self, route_id: Any) -> Route:
        try:
            return self._routes[str(route_id)]
        except KeyError:
            raise RouteNotFound(f"route {route_id} not found", route_id) from None

    def __len__(self) -> int:
        return len(self._routes)


class JsonRouteStore:
    """
    Routes kept in a JSON file: {"routes": [{"id", "name", "directions", ...}]}.
    The file is re-read on every lookup, nothing is cached.
    """

    def __init__(self, path: str):
        self.path = path

    def _entries(self) -> List[Any]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RouteStoreError(f"cannot read {self.path}: {e}") from e
        entries = data.get("routes", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise RouteStoreError(f"{self.path} has no routes list")
        return entries

    def load(self) -> Dict[str, Route]:
        routes: Dict[str, Route] = {}
        for d in self._entries():
            r = Route.from_dict(d)
            if r.route_id in routes:
                raise ValueError(f"duplicate route id {r.route_id} in {self.path}")
            routes[r.route_id] = r
        return routes

    def find_route(self, route_id: Any) -> Route:
        key = str(route_id)
        found: List[Route] = []
        for i, d in enumerate(self._entries()):
            if not isinstance(d, dict) or d.get("id") is None:
                logger.warning("skipping route entry %d without id in %s", i, self.path)
                continue
            if str(d["id"]) == key:
                found.append(Route.from_dict(d))

        if not found:
            raise RouteNotFound(f"route {route_id} not found", route_id)
        if len(found) > 1:
            raise AmbiguousRoute(f"route {route_id} is stored {len(found)} times", route_id)
        return found[0]

    def save(self, route: Route) -> None:
        routes = self.load()
        if route.route_id in routes:
            raise ValueError(f"duplicate route id: {route.route_id}")
        routes[route.route_id] = route

        dir_name = os.path.dirname(os.path.abspath(self.path)) or "."
        fd, tmp_path = tempfile.mkstemp(prefix="routes_", suffix=".json", dir=dir_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"routes": [r.to_dict() for r in routes.values()]}, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info("saved route %s to %s", route.route_id, self.path)
