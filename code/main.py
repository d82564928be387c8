import argparse
import logging
import sys
from typing import List, Optional

import requests

from Route import LatLon
from RouteStore import JsonRouteStore
from config import HOST, LOG_LEVEL, OSRM_URL, PORT, REPLAY_DELAY_S, ROUTES_FILE
from errors import ReplayError
from local_osrm import PROFILES, build_route, draw_route_map
from realtime_runner import run_server

logger = logging.getLogger(__name__)


def parse_latlon(s: str) -> LatLon:
    try:
        lat, lon = (float(v) for v in s.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {s!r}")
    return lat, lon


def _serve(args) -> int:
    run_server(JsonRouteStore(args.routes_file), host=args.host, port=args.port,
               delay_s=args.delay_ms / 1000.0)
    return 0


def _create_route(args) -> int:
    route = build_route(args.name, args.start, args.dest, args.profile, base_url=args.osrm_url)
    JsonRouteStore(args.routes_file).save(route)
    print(route.route_id)
    return 0


def _preview(args) -> int:
    route = JsonRouteStore(args.routes_file).find_route(args.route_id)
    print(draw_route_map(route, args.out))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay stored routes point by point to websocket clients."
    )
    parser.add_argument("--routes-file", default=ROUTES_FILE, help="JSON file holding routes.")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the websocket replay server.")
    p.add_argument("--host", default=HOST)
    p.add_argument("--port", type=int, default=PORT)
    p.add_argument("--delay-ms", type=int, default=int(REPLAY_DELAY_S * 1000),
                   help="Pause after every emitted point.")
    p.set_defaults(func=_serve)

    p = sub.add_parser("create-route", help="Fetch directions from OSRM and store a route.")
    p.add_argument("name")
    p.add_argument("--start", type=parse_latlon, required=True, help="LAT,LON")
    p.add_argument("--dest", type=parse_latlon, required=True, help="LAT,LON")
    p.add_argument("--profile", choices=PROFILES, default="driving")
    p.add_argument("--osrm-url", default=OSRM_URL)
    p.set_defaults(func=_create_route)

    p = sub.add_parser("preview", help="Write an html map of a stored route.")
    p.add_argument("route_id")
    p.add_argument("--out", default="map.html")
    p.set_defaults(func=_preview)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ReplayError as e:
        logger.error("%s: %s", e.kind, e)
        return 1
    except (ValueError, RuntimeError, requests.RequestException) as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
