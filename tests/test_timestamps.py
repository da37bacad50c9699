from __future__ import annotations

from datetime import date, datetime

from trade_journal.ingest.timestamps import (
    merge_date_and_time,
    normalize_timestamp,
    parse_time_of_day,
    parse_timestamp,
    split_offset,
)
from trade_journal.utils.dates import day_start, format_canonical


def test_topstep_offset_timestamp_is_converted_to_reference_zone(zone):
    value, warnings = normalize_timestamp("10/28/2025 00:36:30 +01:00", zone, day_first=False)

    assert value == "2025-10-28 00:36:30"
    assert warnings == []


def test_explicit_offsets_and_abbreviations(zone):
    assert format_canonical(parse_timestamp("2024-07-01T12:00:00Z", zone)) == "2024-07-01 14:00:00"
    assert format_canonical(parse_timestamp("2024-01-15 09:30:00 -0500", zone)) == "2024-01-15 15:30:00"
    assert format_canonical(parse_timestamp("2024-01-15 09:30 EST", zone)) == "2024-01-15 15:30:00"


def test_dash_separated_date_is_not_mistaken_for_offset(zone):
    assert split_offset("01-02-2024") == ("01-02-2024", None)
    assert format_canonical(parse_timestamp("01-02-2024", zone)) == "2024-02-01 00:00:00"


def test_wall_clock_patterns(zone):
    assert format_canonical(parse_timestamp("2024-03-05 08:15:00", zone)) == "2024-03-05 08:15:00"
    assert format_canonical(parse_timestamp("15.03.2024 14:05", zone)) == "2024-03-15 14:05:00"
    assert format_canonical(parse_timestamp("03/15/2024 02:05 PM", zone)) == "2024-03-15 14:05:00"


def test_day_first_controls_ambiguous_slash_dates(zone):
    assert format_canonical(parse_timestamp("01/02/2024", zone)) == "2024-02-01 00:00:00"
    assert format_canonical(parse_timestamp("01/02/2024", zone, day_first=False)) == "2024-01-02 00:00:00"


def test_bare_time_uses_fallback_date(zone):
    assert parse_timestamp("14:30", zone) is None
    assert parse_time_of_day("14:30").hour == 14

    value, warnings = normalize_timestamp("14:30", zone, fallback_date=date(2024, 2, 1))

    assert value == "2024-02-01 14:30:00"
    assert warnings == []


def test_merged_date_and_time_columns(zone):
    merged = merge_date_and_time("01/02/2024", "14:30")

    assert merged == "01/02/2024 14:30"
    assert normalize_timestamp(merged, zone)[0] == "2024-02-01 14:30:00"
    assert merge_date_and_time("", "14:30") == "14:30"
    assert merge_date_and_time("", "") is None


def test_unparseable_values_warn_and_use_fallback(zone):
    assert normalize_timestamp("", zone) == (None, [])

    value, warnings = normalize_timestamp("not a date", zone, label="FilledAt")
    assert value is None
    assert warnings == ["Could not parse FilledAt value 'not a date'."]

    value, warnings = normalize_timestamp(
        "not a date", zone, fallback=datetime(2024, 1, 1, 9, 0), label="FilledAt"
    )
    assert value == "2024-01-01 09:00:00"
    assert warnings == ["Could not parse FilledAt value 'not a date'; used fallback date."]


def test_day_start():
    assert day_start("2024-02-01 14:30:00") == "2024-02-01 00:00:00"
