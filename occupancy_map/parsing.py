# occupancy_map/parsing.py
import json
import logging
import math
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import Category, SensorRecord, SubUnitKind

log = logging.getLogger(__name__)

DELIMITER = ";"
DEFAULT_NAME = "Unnamed"

NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
DECIMAL_COMMA_RE = re.compile(r"^[-+]?\d+,\d+$")
COMMA_SPACE_RE = re.compile(r",\s+")


class FeedFormatError(ValueError):
    """The feed as a whole cannot be ingested (empty, or no header row)."""


# ---------- Cell parsers ----------
def parse_float(text: str, decimal_comma: bool = True) -> Optional[float]:
    """
    Empty cell -> None, unparseable cell -> NaN. Never raises.
    With decimal_comma only the first comma is taken as the decimal mark.
    """
    text = (text or "").strip()
    if not text:
        return None
    if decimal_comma:
        text = text.replace(",", ".", 1)
    try:
        return float(text)
    except ValueError:
        return math.nan


def parse_int(text: str, decimal_comma: bool = True) -> Optional[int]:
    """Nullable integer: empty and unparseable cells both give None."""
    value = parse_float(text, decimal_comma)
    if value is None or not math.isfinite(value):
        return None
    return int(value)


def _reject_constant(name):
    raise ValueError(f"non-finite constant {name}")


def _strict_list(text: str) -> Optional[Tuple[float, ...]]:
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    if not isinstance(data, list):
        return None
    out = []
    for item in data:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return None
        try:
            value = float(item)
        except OverflowError:
            continue
        if math.isfinite(value):
            out.append(value)
    return tuple(out)


def decode_list(text: str) -> Optional[Tuple[float, ...]]:
    """
    Decode a list-valued cell such as "[20,47,38,79]".

    A strict JSON array of numbers wins; anything else falls back to pulling
    every signed decimal number out of the raw text, left to right.
    Returns None when neither yields a value.
    """
    text = (text or "").strip()
    if not text:
        return None

    strict = _strict_list(COMMA_SPACE_RE.sub(",", text))
    if strict:
        return strict
    if strict is not None:
        # "[]", or nothing finite in it
        return None

    found = tuple(v for v in map(float, NUMBER_RE.findall(text)) if math.isfinite(v))
    if found:
        log.debug("list cell %r decoded by token scan", text)
        return found
    log.debug("list cell %r has no numbers", text)
    return None


def decode_reading(text: str, decimal_comma: bool = True) -> Optional[Tuple[float, ...]]:
    """CO2/temperature cell: a lone "21,8" is one reading, not two."""
    text = (text or "").strip()
    if decimal_comma and DECIMAL_COMMA_RE.match(text):
        value = parse_float(text, decimal_comma)
        return (value,) if math.isfinite(value) else None
    return decode_list(text)


# ---------- Column dispatch ----------
class ParserKind(str, Enum):
    SCALAR_FLOAT_LOCALE = "scalar-float-locale"
    SCALAR_INT_NULLABLE = "scalar-int-nullable"
    STRUCTURED_LIST = "structured-list"
    LOCALE_LIST = "locale-list"
    RAW_STRING = "raw-string"


COLUMN_PARSERS: Dict[str, ParserKind] = {
    "lat": ParserKind.SCALAR_FLOAT_LOCALE,
    "long": ParserKind.SCALAR_FLOAT_LOCALE,
    "co2": ParserKind.LOCALE_LIST,
    "temp": ParserKind.LOCALE_LIST,
    "occupancyrate": ParserKind.SCALAR_INT_NULLABLE,
    "id": ParserKind.SCALAR_INT_NULLABLE,
    "wagonsoccupancylist": ParserKind.STRUCTURED_LIST,
    "floorsoccupancylist": ParserKind.STRUCTURED_LIST,
}

PARSERS: Dict[ParserKind, Callable[[str, bool], Any]] = {
    ParserKind.SCALAR_FLOAT_LOCALE: parse_float,
    ParserKind.SCALAR_INT_NULLABLE: parse_int,
    ParserKind.STRUCTURED_LIST: lambda text, decimal_comma: decode_list(text),
    ParserKind.LOCALE_LIST: decode_reading,
    ParserKind.RAW_STRING: lambda text, decimal_comma: (text or "").strip(),
}

# columns with a dedicated SensorRecord field; the rest land in `extra`
KNOWN_COLUMNS = frozenset(COLUMN_PARSERS) | {"name", "type"}

# which sub-unit list belongs to which category
SUB_UNIT_COLUMNS = {
    Category.VEHICLE: ("wagonsoccupancylist", SubUnitKind.WAGON),
    Category.BUILDING: ("floorsoccupancylist", SubUnitKind.FLOOR),
}


def parser_for(header: str) -> ParserKind:
    return COLUMN_PARSERS.get(header, ParserKind.RAW_STRING)


def parse_cell(header: str, text: str, decimal_comma: bool = True):
    return PARSERS[parser_for(header)](text, decimal_comma)


def normalize_header(line: str) -> List[str]:
    return [h.strip().lower() for h in line.lstrip("\ufeff").split(DELIMITER)]


# ---------- Rows ----------
def normalize_row(cells: Sequence[str], headers: Sequence[str],
                  decimal_comma: bool = True, line_no: Optional[int] = None) -> Optional[SensorRecord]:
    """
    Turn one split line into a SensorRecord, or None for a blank line.
    Missing trailing cells count as empty.
    """
    if not any(c.strip() for c in cells):
        if any(cells):
            log.debug("line %s: only delimiters, skipped", line_no)
        return None
    if len(cells) > len(headers):
        log.debug("line %s: %d surplus cells ignored", line_no, len(cells) - len(headers))

    values: Dict[str, Any] = {}
    for i, header in enumerate(headers):
        if not header:
            continue
        text = cells[i] if i < len(cells) else ""
        values[header] = parse_cell(header, text, decimal_comma)

    record_type = values.get("type") or ""
    sub_units, kind = None, None
    column = SUB_UNIT_COLUMNS.get(Category.of(record_type))
    if column is not None:
        sub_units = values.get(column[0]) or None
        kind = column[1] if sub_units else None

    record = SensorRecord(
        id=values.get("id"),
        name=values.get("name") or DEFAULT_NAME,
        type=record_type,
        latitude=values.get("lat"),
        longitude=values.get("long"),
        co2=values.get("co2"),
        temperature=values.get("temp"),
        occupancy_sub_units=sub_units,
        sub_unit_kind=kind,
        occupancy_scalar=values.get("occupancyrate"),
        extra={h: v for h, v in values.items() if h not in KNOWN_COLUMNS},
    )
    if not record.placeable:
        log.info("line %s: %r has no usable position", line_no, record.name)
    return record


def parse_feed(text: str, decimal_comma: bool = True) -> List[SensorRecord]:
    """
    Parse a whole feed. The first non-blank line is the header.
    Raises FeedFormatError when there is nothing to ingest; row-level
    problems never abort the batch.
    """
    lines = (text or "").lstrip("\ufeff").splitlines()
    header_at = next((i for i, line in enumerate(lines) if line.strip()), None)
    if header_at is None:
        raise FeedFormatError("feed is empty")

    headers = normalize_header(lines[header_at])
    if not KNOWN_COLUMNS.intersection(headers):
        raise FeedFormatError("no header row found")

    records: List[SensorRecord] = []
    seen_ids = set()
    for line_no, line in enumerate(lines[header_at + 1:], start=header_at + 2):
        if not line.strip():
            continue
        record = normalize_row(line.split(DELIMITER), headers, decimal_comma, line_no)
        if record is None:
            continue
        if record.id is not None:
            if record.id in seen_ids:
                log.warning("line %d: duplicate id %d (%r)", line_no, record.id, record.name)
            seen_ids.add(record.id)
        records.append(record)

    log.info("parsed %d records from %d lines", len(records), len(lines))
    return records
