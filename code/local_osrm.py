import logging
import uuid
from typing import Any, Dict, List

import folium
import polyline
import requests

from Route import LatLon, Route
from config import OSRM_URL

logger = logging.getLogger(__name__)

PROFILES = ("driving", "walking", "cycling")


# -------------------------
# small utils
# -------------------------
def as_location(p: LatLon) -> Dict[str, float]:
    return {"lat": float(p[0]), "lng": float(p[1])}


def step_endpoints(step: Dict[str, Any]) -> List[LatLon]:
    # OSRM step geometry is an encoded polyline (precision 5), points are (lat, lon)
    pts = polyline.decode(step.get("geometry") or "")
    if pts:
        return [pts[0], pts[-1]]
    lon, lat = step["maneuver"]["location"]
    return [(lat, lon), (lat, lon)]


# -------------------------
# OSRM directions fetch
# -------------------------
def fetch_directions(start: LatLon, dest: LatLon, profile: str = "driving",
                     base_url: str = OSRM_URL, timeout: float = 60) -> Dict[str, Any]:
    """
    Fetch turn-by-turn directions and convert them to a directions document:
    {"routes": [{"legs": [{"steps": [{"start_location", "end_location", ...}]}]}]}
    """
    if profile not in PROFILES:
        raise ValueError(f"Unknown profile: {profile}")

    a_lat, a_lon = start
    b_lat, b_lon = dest
    coords = f"{a_lon},{a_lat};{b_lon},{b_lat}"
    url = (
        f"{base_url}/route/v1/{profile}/{coords}"
        "?overview=false&geometries=polyline&steps=true"
    )
    logger.debug("GET %s", url)

    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    data = r.json()
    if data.get("code") != "Ok":
        raise RuntimeError(data)

    routes = []
    for route in data["routes"]:
        legs = []
        for leg in route["legs"]:
            steps = []
            for step in leg["steps"]:
                s, e = step_endpoints(step)
                steps.append({
                    "start_location": as_location(s),
                    "end_location": as_location(e),
                    "distance": step.get("distance", 0.0),
                    "duration": step.get("duration", 0.0),
                    "name": step.get("name", ""),
                })
            legs.append({
                "steps": steps,
                "distance": leg.get("distance", 0.0),
                "duration": leg.get("duration", 0.0),
            })
        routes.append({
            "legs": legs,
            "distance": route.get("distance", 0.0),
            "duration": route.get("duration", 0.0),
        })
    return {"routes": routes}


def build_route(name: str, start: LatLon, dest: LatLon, profile: str = "driving",
                base_url: str = OSRM_URL) -> Route:
    directions = fetch_directions(start, dest, profile, base_url=base_url)
    return Route(
        route_id=str(uuid.uuid4()),
        name=name,
        directions=directions,
        source=start,
        destination=dest,
    )


# -------------------------
# preview map
# -------------------------
def draw_route_map(route: Route, filename: str = "map.html") -> str:
    segments = route.segments()
    if not segments:
        raise ValueError(f"route {route.route_id} has no segments to draw")

    path: List[LatLon] = []
    for seg in segments:
        path.append(seg.start)
        path.append(seg.end)

    m = folium.Map(location=path[0], zoom_start=13)
    folium.Marker(path[0], tooltip="Start", icon=folium.Icon(color="green")).add_to(m)
    folium.Marker(path[-1], tooltip="End", icon=folium.Icon(color="red")).add_to(m)
    folium.PolyLine(path, color="blue", weight=5, opacity=0.8, tooltip=route.name).add_to(m)

    m.save(filename)
    return filename
