from dataclasses import dataclass
from typing import Any, Dict

from Route import LatLon


@dataclass(frozen=True)
class PointEvent:
    route_id: Any  # exactly as the client sent it
    lat: float
    lng: float

    @classmethod
    def at(cls, route_id: Any, pos: LatLon) -> "PointEvent":
        return cls(route_id=route_id, lat=pos[0], lng=pos[1])

    def to_dict(self) -> Dict[str, Any]:
        return {"route_id": self.route_id, "lat": self.lat, "lng": self.lng}
