import logging
import math

import pytest

from occupancy_map.models import Category, SubUnitKind
from occupancy_map.parsing import (
    COLUMN_PARSERS, FeedFormatError, ParserKind, decode_list, decode_reading,
    normalize_header, normalize_row, parse_feed, parse_float, parse_int, parser_for,
)


# ---------- Numeric cells ----------
def test_parse_float_decimal_comma():
    assert parse_float("21,8") == pytest.approx(21.8)
    assert parse_float("  48,8566 ") == pytest.approx(48.8566)


def test_parse_float_decimal_point_locale():
    assert parse_float("21.8", decimal_comma=False) == pytest.approx(21.8)
    assert math.isnan(parse_float("21,8", decimal_comma=False))


def test_parse_float_empty_is_none_and_garbage_is_nan():
    assert parse_float("") is None
    assert parse_float("   ") is None
    assert math.isnan(parse_float("n/a"))
    # only the first comma is a decimal mark
    assert math.isnan(parse_float("1,234,5"))


def test_parse_int_is_nullable():
    assert parse_int("") is None
    assert parse_int("abc") is None
    assert parse_int("12") == 12
    assert parse_int("75,5") == 75


# ---------- List cells ----------
def test_decode_list_bracketed_literal():
    assert decode_list("[20, 47,38,79]") == (20.0, 47.0, 38.0, 79.0)


def test_decode_list_falls_back_to_token_scan():
    assert decode_list("20,47,38,79") == (20.0, 47.0, 38.0, 79.0)
    assert decode_list("floors: -3.5 / +2") == (-3.5, 2.0)


def test_decode_list_rejects_nested_and_non_numeric_in_strict_mode():
    assert decode_list("[[1,2],[3]]") == (1.0, 2.0, 3.0)
    assert decode_list("[1, true]") == (1.0,)
    assert decode_list("[NaN, 2]") == (2.0,)


def test_decode_list_absent():
    assert decode_list("") is None
    assert decode_list("[]") is None
    assert decode_list("none") is None


def test_decode_list_scalar_is_not_a_strict_list():
    # json would read "42" as a bare number; the scan still gives a one-element list
    assert decode_list("42") == (42.0,)


def test_decode_reading_single_decimal_comma_value():
    assert decode_reading("21,8") == (pytest.approx(21.8),)
    assert decode_reading("21,8", decimal_comma=False) == (21.0, 8.0)
    assert decode_reading("[19,20,21]") == (19.0, 20.0, 21.0)
    assert decode_reading("") is None


# ---------- Dispatch ----------
@pytest.mark.parametrize("header,kind", [
    ("lat", ParserKind.SCALAR_FLOAT_LOCALE),
    ("long", ParserKind.SCALAR_FLOAT_LOCALE),
    ("co2", ParserKind.LOCALE_LIST),
    ("temp", ParserKind.LOCALE_LIST),
    ("occupancyrate", ParserKind.SCALAR_INT_NULLABLE),
    ("id", ParserKind.SCALAR_INT_NULLABLE),
    ("wagonsoccupancylist", ParserKind.STRUCTURED_LIST),
    ("floorsoccupancylist", ParserKind.STRUCTURED_LIST),
    ("name", ParserKind.RAW_STRING),
    ("type", ParserKind.RAW_STRING),
    ("operator", ParserKind.RAW_STRING),
])
def test_parser_for_header(header, kind):
    assert parser_for(header) is kind


def test_every_dispatched_column_has_a_kind():
    assert all(isinstance(k, ParserKind) for k in COLUMN_PARSERS.values())


def test_normalize_header_trims_and_lowercases():
    assert normalize_header("\ufeffId ; Name;OccupancyRate ") == ["id", "name", "occupancyrate"]


# ---------- Rows ----------
HEADERS = normalize_header("id;name;type;lat;long;co2;temp;occupancyRate;wagonsOccupancyList;floorsOccupancyList;operator")


def test_normalize_row_blank_is_skipped():
    assert normalize_row([""], HEADERS) is None
    assert normalize_row(" ; ; ".split(";"), HEADERS) is None


def test_normalize_row_vehicle_takes_wagons():
    cells = "4;RER B;Vehicle;48,86;2,34;[900,870];[19,20];;[20,47,38,79];[1,2];RATP".split(";")
    record = normalize_row(cells, HEADERS)
    assert record.id == 4
    assert record.occupancy_sub_units == (20.0, 47.0, 38.0, 79.0)
    assert record.sub_unit_kind is SubUnitKind.WAGON
    assert record.co2 == (900.0, 870.0)
    assert record.extra == {"operator": "RATP"}


def test_normalize_row_building_takes_floors():
    cells = "3;Tower;Building;48,84;2,32;540;21,4;;[9,9];[10,20];".split(";")
    record = normalize_row(cells, HEADERS)
    assert record.occupancy_sub_units == (10.0, 20.0)
    assert record.sub_unit_kind is SubUnitKind.FLOOR
    assert record.temperature == (pytest.approx(21.4),)


def test_normalize_row_simple_category_has_no_sub_units():
    cells = "1;Gare du Nord;Gare;48,88;2,35;612;19,5;64;[10,20];[30];".split(";")
    record = normalize_row(cells, HEADERS)
    assert record.occupancy_sub_units is None
    assert record.sub_unit_kind is None
    assert record.occupancy_scalar == 64


def test_normalize_row_short_row_and_bad_position():
    record = normalize_row(["8", "Short", "Gare", "north"], HEADERS)
    assert record.name == "Short"
    assert math.isnan(record.latitude)
    assert record.longitude is None
    assert not record.placeable
    assert record.position is None
    assert record.co2 is None
    assert record.occupancy_scalar is None


def test_normalize_row_unknown_type_kept_verbatim():
    record = normalize_row("6;Bus 38;Bus;48,87;2,34".split(";"), HEADERS)
    assert record.type == "Bus"
    assert record.category is Category.UNKNOWN


def test_normalize_row_missing_name_gets_default():
    record = normalize_row("9;;Gare;48,87;2,34".split(";"), HEADERS)
    assert record.name == "Unnamed"


# ---------- Whole feed ----------
def test_parse_feed_sample(sample_feed):
    records = parse_feed(sample_feed)
    assert [r.id for r in records] == [1, 2, 3, 4, 5, 6]
    cafe = records[1]
    assert cafe.name == "Central Café"
    assert cafe.temperature == (pytest.approx(21.8),)
    assert cafe.position == (pytest.approx(48.8566), pytest.approx(2.3522))


def test_parse_feed_blank_lines_do_not_shift_columns(sample_feed):
    feed = sample_feed.replace("\n", "\n\n   \n")
    records = parse_feed(feed)
    assert len(records) == 6
    tower = records[2]
    assert tower.name == "Tour Montparnasse"
    assert tower.type == "Building"
    assert tower.occupancy_sub_units == (20.0, 47.0, 38.0, 79.0)


def test_parse_feed_crlf_and_bom(sample_feed):
    records = parse_feed("\ufeff" + sample_feed.replace("\n", "\r\n"))
    assert len(records) == 6
    assert records[0].id == 1


def test_parse_feed_header_only():
    assert parse_feed("id;name;type;lat;long\n") == []


@pytest.mark.parametrize("text", ["", "   \n\n", None])
def test_parse_feed_empty_is_fatal(text):
    with pytest.raises(FeedFormatError):
        parse_feed(text)


def test_parse_feed_without_header_is_fatal():
    with pytest.raises(FeedFormatError):
        parse_feed("1;Gare du Nord;Gare;48,88;2,35\n2;Other;Gare;48,1;2,1\n")


def test_parse_feed_duplicate_ids_are_kept(caplog):
    feed = "id;name;type\n1;A;Gare\n1;B;Gare\n"
    with caplog.at_level(logging.WARNING, logger="occupancy_map.parsing"):
        records = parse_feed(feed)
    assert [r.name for r in records] == ["A", "B"]
    assert "duplicate id" in caplog.text


def test_parse_feed_decimal_point_locale():
    records = parse_feed("name;lat;long;temp\nX;48.85;2.35;21.8\n", decimal_comma=False)
    assert records[0].position == (pytest.approx(48.85), pytest.approx(2.35))
    assert records[0].temperature == (pytest.approx(21.8),)


# ---------- Oversized numbers ----------
HUGE = "9" * 400


def test_decode_list_drops_non_finite_values():
    assert decode_list("[1e400]") is None
    assert decode_list("[1e400, 5]") == (5.0,)
    assert decode_list("[" + HUGE + "]") is None
    assert decode_list("[" + HUGE + ", 12]") == (12.0,)


def test_token_scan_drops_overflowing_numbers():
    assert decode_list(HUGE) is None
    assert decode_list(HUGE + ", 3 / x") == (3.0,)


def test_decode_reading_overflowing_decimal_comma_value():
    assert decode_reading(HUGE + ",5") is None
    assert decode_reading(HUGE) is None


def test_oversized_cells_keep_the_rest_of_the_row():
    feed = f"name;type;co2;temp;floorsoccupancylist\nTower;Building;{HUGE};21,8;[{HUGE}]\n"
    record = parse_feed(feed)[0]
    assert record.co2 is None
    assert record.occupancy_sub_units is None
    assert record.temperature == (pytest.approx(21.8),)


def test_delimiter_only_row_is_skipped_and_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="occupancy_map.parsing"):
        records = parse_feed("id;name;type\n;;\n1;A;Gare\n")
    assert [r.name for r in records] == ["A"]
    assert "only delimiters" in caplog.text
