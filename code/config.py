import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root when running locally
ROOT_DIR = Path(__file__).resolve().parents[1]
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

# WebSocket server
HOST = os.getenv("REPLAY_HOST", "127.0.0.1")
PORT = int(os.getenv("REPLAY_PORT", "8000"))

# pause after every emitted point
REPLAY_DELAY_S = float(os.getenv("REPLAY_DELAY_MS", "2000")) / 1000.0

ROUTES_FILE = os.getenv("REPLAY_ROUTES_FILE", "routes.json")

OSRM_URL = os.getenv("OSRM_URL", "http://localhost:5000")

LOG_LEVEL = os.getenv("REPLAY_LOG_LEVEL", "INFO")

# inbound / outbound event names
EVENT_NEW_POINTS = "client:new-points"
EVENT_POINTS_BROADCAST = "server:new-points:list"
EVENT_POINTS_ERROR = "server:new-points:error"


def points_event_for(route_id) -> str:
    return f"server:new-points/{route_id}:list"
