from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Optional, Tuple

from errors import MalformedRoute

LatLon = Tuple[float, float]


@dataclass(frozen=True)
class Segment:
    start: LatLon
    end: LatLon


def _location(step: Any, key: str, route_id: str, i: int) -> LatLon:
    loc = step.get(key) if isinstance(step, dict) else None
    if not isinstance(loc, dict):
        raise MalformedRoute(f"step {i} has no {key}", route_id)
    lat, lng = loc.get("lat"), loc.get("lng")
    # bool is a Real subclass
    for v in (lat, lng):
        if not isinstance(v, Real) or isinstance(v, bool):
            raise MalformedRoute(f"step {i} {key} is not numeric: {loc!r}", route_id)
    return float(lat), float(lng)


@dataclass(frozen=True)
class Route:
    """
    A stored route.
    directions: directions document, {"routes": [{"legs": [{"steps": [...]}]}]}
    each step carries start_location / end_location as {"lat": .., "lng": ..}
    """
    route_id: str
    name: str
    directions: Dict[str, Any] = field(default_factory=dict)
    source: Optional[LatLon] = None
    destination: Optional[LatLon] = None

    def steps(self) -> List[Any]:
        routes = self.directions.get("routes") if isinstance(self.directions, dict) else None
        if not isinstance(routes, list) or not routes:
            raise MalformedRoute("route has no itinerary", self.route_id)
        legs = routes[0].get("legs") if isinstance(routes[0], dict) else None
        if not isinstance(legs, list) or not legs:
            raise MalformedRoute("first itinerary has no legs", self.route_id)
        steps = legs[0].get("steps") if isinstance(legs[0], dict) else None
        if not isinstance(steps, list):
            raise MalformedRoute("first leg has no steps", self.route_id)
        return steps

    def segments(self) -> List[Segment]:
        # validate everything up front so a bad step never cuts a replay short
        return [
            Segment(
                start=_location(step, "start_location", self.route_id, i),
                end=_location(step, "end_location", self.route_id, i),
            )
            for i, step in enumerate(self.steps())
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.route_id,
            "name": self.name,
            "source": list(self.source) if self.source else None,
            "destination": list(self.destination) if self.destination else None,
            "directions": self.directions,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Route":
        src = d.get("source")
        dst = d.get("destination")
        return cls(
            route_id=str(d["id"]),
            name=d.get("name", ""),
            directions=d.get("directions") or {},
            source=(src[0], src[1]) if src else None,
            destination=(dst[0], dst[1]) if dst else None,
        )
