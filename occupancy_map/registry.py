# occupancy_map/registry.py
import logging
import threading
import unicodedata
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import pandas as pd

from .models import MarkerEntry, SensorRecord
from .occupancy import aggregate_occupancy

log = logging.getLogger(__name__)

FRAME_COLUMNS = [
    "id", "name", "type", "category", "latitude", "longitude",
    "aggregate_occupancy", "visible", "placeable",
]


def fold(text: str) -> str:
    """Case- and accent-insensitive form used for name search ("Café" -> "cafe")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


class MarkerRegistry:
    """
    Markers of the current ingestion run.

    Rebuilt wholesale by load_batch(); after that only `visible` changes.
    One lock covers registration, filtering and search.
    """

    def __init__(self):
        self._entries: List[MarkerEntry] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[MarkerEntry]:
        return iter(self.entries())

    # ---------- Lifecycle ----------
    def clear(self) -> None:
        with self._lock:
            self._entries = []

    @staticmethod
    def _entry(record: SensorRecord, handle: Any = None) -> MarkerEntry:
        return MarkerEntry(
            record=record,
            aggregate_occupancy=aggregate_occupancy(record),
            visible=True,
            handle=handle,
        )

    def register(self, record: SensorRecord, handle: Any = None) -> MarkerEntry:
        entry = self._entry(record, handle)
        with self._lock:
            self._entries.append(entry)
        return entry

    def load_batch(self, records: Iterable[SensorRecord],
                   handle_factory: Optional[Callable[[SensorRecord], Any]] = None) -> int:
        # previous markers stay until the whole batch is built
        entries = [
            self._entry(record, handle_factory(record) if handle_factory else None)
            for record in records
        ]
        with self._lock:
            self._entries = entries
            count = len(entries)
        log.info("registry loaded with %d markers", count)
        return count

    # ---------- Filter / search ----------
    def filter_by_type(self, type_: str) -> int:
        """Show only entries whose type is exactly `type_`. Returns how many are visible."""
        with self._lock:
            for entry in self._entries:
                entry.visible = entry.record.type == type_
            return sum(1 for e in self._entries if e.visible)

    def show_all(self) -> int:
        with self._lock:
            for entry in self._entries:
                entry.visible = True
            return len(self._entries)

    def search(self, term: str) -> Optional[MarkerEntry]:
        """First entry (registration order) whose name contains `term`, ignoring case and accents; None if none."""
        needle = fold(term)
        with self._lock:
            for entry in self._entries:
                if needle in fold(entry.record.name):
                    return entry
        return None

    # ---------- Views ----------
    def entries(self) -> List[MarkerEntry]:
        with self._lock:
            return list(self._entries)

    def visible_entries(self) -> List[MarkerEntry]:
        with self._lock:
            return [e for e in self._entries if e.visible]

    def types(self) -> List[str]:
        seen: Dict[str, None] = {}
        with self._lock:
            for entry in self._entries:
                seen.setdefault(entry.record.type, None)
        return list(seen)

    def to_frame(self) -> pd.DataFrame:
        with self._lock:
            rows = [
                {
                    "id": e.record.id,
                    "name": e.record.name,
                    "type": e.record.type,
                    "category": e.record.category.value,
                    "latitude": e.record.latitude,
                    "longitude": e.record.longitude,
                    "aggregate_occupancy": e.aggregate_occupancy,
                    "visible": e.visible,
                    "placeable": e.record.placeable,
                }
                for e in self._entries
            ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)

    def summary(self) -> List[Dict[str, Any]]:
        """Per-type marker counts and mean occupancy, in first-seen type order."""
        df = self.to_frame()
        if df.empty:
            return []
        grouped = df.groupby("type", sort=False).agg(
            count=("name", "size"),
            visible=("visible", "sum"),
            placeable=("placeable", "sum"),
            mean_occupancy=("aggregate_occupancy", "mean"),
        )
        out = []
        for type_, r in grouped.iterrows():
            out.append({
                "type": type_,
                "count": int(r["count"]),
                "visible": int(r["visible"]),
                "placeable": int(r["placeable"]),
                "mean_occupancy": round(float(r["mean_occupancy"]), 2),
            })
        return out
