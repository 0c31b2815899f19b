# occupancy_map/config.py
import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- Feed ---
FEED_SOURCE = os.getenv("FEED_SOURCE", "data/sensors.csv")
FEED_TIMEOUT = float(os.getenv("FEED_TIMEOUT", "10"))
DECIMAL_COMMA = _flag("DECIMAL_COMMA", "1")
INGEST_ON_STARTUP = _flag("INGEST_ON_STARTUP", "1")

# --- Server ---
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3000"))
STATIC_DIR = os.getenv("STATIC_DIR", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# --- Map defaults handed to the front-end ---
MAP_CENTER_LAT = float(os.getenv("MAP_CENTER_LAT", "51.505"))
MAP_CENTER_LON = float(os.getenv("MAP_CENTER_LON", "-0.09"))
MAP_ZOOM = int(os.getenv("MAP_ZOOM", "13"))
MAP_MAX_ZOOM = int(os.getenv("MAP_MAX_ZOOM", "19"))
TILE_URL = os.getenv("TILE_URL", "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png")
TILE_ATTRIBUTION = os.getenv("TILE_ATTRIBUTION", "&copy; OpenStreetMap contributors")
