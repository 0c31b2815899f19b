# occupancy_map/main.py
import logging
import math
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from .config import (
    CORS_ORIGINS, DECIMAL_COMMA, FEED_SOURCE, HOST, INGEST_ON_STARTUP, LOG_LEVEL,
    MAP_CENTER_LAT, MAP_CENTER_LON, MAP_MAX_ZOOM, MAP_ZOOM, PORT, STATIC_DIR,
    TILE_ATTRIBUTION, TILE_URL,
)
from .feed import fetch_feed, is_url
from .models import MarkerEntry
from .parsing import FeedFormatError, parse_feed
from .registry import MarkerRegistry

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if INGEST_ON_STARTUP:
        await run_in_threadpool(startup_ingest)
    yield


app = FastAPI(title="Occupancy Map API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

registry = MarkerRegistry()
# one ingestion run at a time
_ingest_lock = threading.Lock()


# ---------- Utilities ----------
def _readings(values):
    """JSON-safe list; non-finite readings become null."""
    if not values:
        return None
    return [v if math.isfinite(v) else None for v in values]


def marker_view(entry: MarkerEntry) -> dict:
    """Everything the map popup / detail panel needs for one marker."""
    rec = entry.record
    color = entry.color
    return {
        "id": rec.id,
        "name": rec.name,
        "type": rec.type,
        "category": rec.category.value,
        "position": list(rec.position) if rec.placeable else None,
        "placeable": rec.placeable,
        "co2": _readings(rec.co2),
        "temperature": _readings(rec.temperature),
        "occupancy": entry.aggregate_occupancy,
        "sub_units": _readings(rec.occupancy_sub_units),
        "sub_unit_kind": rec.sub_unit_kind.value if rec.sub_unit_kind else None,
        "color": {
            "hue": color.hue,
            "saturation": color.saturation,
            "lightness": color.lightness,
            "css": color.css,
        },
        "visible": entry.visible,
        "extra": rec.extra,
    }


def ingest_text(text: str) -> int:
    """Parse a whole feed and rebuild the registry. Caller holds _ingest_lock."""
    records = parse_feed(text, decimal_comma=DECIMAL_COMMA)
    return registry.load_batch(records)


def _run_ingestion(text: str) -> dict:
    with _ingest_lock:
        try:
            count = ingest_text(text)
        except FeedFormatError as e:
            log.error("ingestion failed: %s", e)
            raise HTTPException(status_code=422, detail=str(e))
        except Exception as e:
            log.exception("ingestion failed")
            raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok", "message": "ingest successful", "count": count}


# ---------- Endpoints ----------
def startup_ingest() -> None:
    try:
        _run_ingestion(fetch_feed(FEED_SOURCE))
    except HTTPException as e:
        # the server stays up with an empty registry
        log.error("startup ingestion from %s failed: %s", FEED_SOURCE, e.detail)


@app.post("/api/v1/ingest")
def ingest(source: Optional[str] = None):
    """
    Fetch the feed (default FEED_SOURCE), parse it and reload every marker.
    A failed fetch leaves the current markers untouched. Only http(s)
    sources may be passed in; local files come from configuration.
    """
    if source and not is_url(source):
        raise HTTPException(status_code=400, detail="source must be an http(s) URL")
    text = fetch_feed(source or FEED_SOURCE)
    return _run_ingestion(text)


@app.post("/api/v1/ingest/raw")
async def ingest_raw(request: Request):
    body = await request.body()
    return await run_in_threadpool(_run_ingestion, body.decode("utf-8", errors="replace"))


@app.get("/api/v1/markers")
def get_markers(visible_only: bool = False):
    entries = registry.visible_entries() if visible_only else registry.entries()
    return {"status": "ok", "data": [marker_view(e) for e in entries]}


@app.post("/api/v1/markers/filter")
def filter_markers(type_: str = Query(..., alias="type")):
    visible = registry.filter_by_type(type_)
    return {"status": "ok", "type": type_, "visible": visible}


@app.post("/api/v1/markers/show-all")
def show_all_markers():
    return {"status": "ok", "visible": registry.show_all()}


@app.get("/api/v1/markers/search")
def search_markers(q: str):
    entry = registry.search(q)
    if entry is None:
        return {"status": "not_found", "message": f"No marker matching '{q}'", "data": None}
    return {"status": "ok", "data": marker_view(entry)}


@app.get("/api/v1/markers/types")
def get_marker_types():
    return {"status": "ok", "data": registry.types()}


@app.get("/api/v1/markers/summary")
def get_marker_summary():
    return {"status": "ok", "data": registry.summary()}


@app.get("/api/v1/map")
def get_map_config():
    return {
        "center": [MAP_CENTER_LAT, MAP_CENTER_LON],
        "zoom": MAP_ZOOM,
        "max_zoom": MAP_MAX_ZOOM,
        "tile_url": TILE_URL,
        "attribution": TILE_ATTRIBUTION,
    }


if STATIC_DIR and Path(STATIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")
else:
    @app.get("/")
    def health():
        return {"status": "ok", "service": "Occupancy Map API", "markers": len(registry)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT)
