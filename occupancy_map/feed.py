# occupancy_map/feed.py
import logging
from pathlib import Path

import requests
from fastapi import HTTPException

from .config import FEED_TIMEOUT

log = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def fetch_feed(source: str, timeout: float = FEED_TIMEOUT) -> str:
    """
    Return the raw feed text from an http(s) URL or a local file path.
    Any transport failure is raised once as a 503.
    """
    if is_url(source):
        try:
            r = requests.get(source, timeout=timeout)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            log.error("feed request failed: %s", e)
            raise HTTPException(status_code=503, detail=f"Feed request failed: {str(e)}")
        if not r.encoding:
            r.encoding = "utf-8"
        return r.text

    path = Path(source)
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error("feed file unreadable: %s", e)
        raise HTTPException(status_code=503, detail=f"Feed file unreadable: {path}: {e}")
