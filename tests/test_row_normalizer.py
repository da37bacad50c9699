from __future__ import annotations

from datetime import date

from trade_journal.ingest.header_aliases import DEFAULT_RESOLVER
from trade_journal.ingest.models import TargetField
from trade_journal.ingest.row_normalizer import normalize_table
from trade_journal.ingest.tokenizer import tokenize


def _normalize(content: str, zone, **kwargs):
    table = tokenize(content)
    resolution = DEFAULT_RESOLVER.resolve(table.headers)
    return normalize_table(table, resolution, zone=zone, **kwargs)


def test_size_and_price_must_be_positive(zone):
    rows = _normalize("Symbol,Qty,Price,Side,Time\nES,0,-5,Buy,2024-01-02 09:30:00\n", zone)

    assert rows[0].size == 0.0
    assert rows[0].execute_price == -5.0
    assert "Size must be greater than zero." in rows[0].warnings
    assert "Execute price must be greater than zero." in rows[0].warnings


def test_negative_size_and_zero_price_are_flagged(zone):
    rows = _normalize("Symbol,Qty,Price,Side,Time\nES,-1,0,Buy,2024-01-02 09:30:00\n", zone)

    assert rows[0].size == -1.0
    assert rows[0].execute_price == 0.0
    assert "Size must be greater than zero." in rows[0].warnings
    assert "Execute price must be greater than zero." in rows[0].warnings


def test_missing_price_is_none_not_zero(zone):
    rows = _normalize("Symbol,Qty,Price,Side,Time\nES,1,,Buy,2024-01-02 09:30:00\n", zone)

    assert rows[0].execute_price is None
    assert "Missing execute price." in rows[0].warnings


def test_separate_date_and_time_columns_are_merged(zone):
    rows = _normalize("Symbol,Price,Side,Date,Time\nES,5000,Buy,01/02/2024,14:30\n", zone)

    assert rows[0].trade_day == "2024-02-01 00:00:00"
    assert rows[0].created_at == "2024-02-01 14:30:00"
    assert rows[0].filled_at == "2024-02-01 14:30:00"


def test_paired_entry_columns_are_merged(zone):
    rows = _normalize(
        "Symbol,Price,Side,Entry Date,Entry Time\nES,5000,Buy,01/02/2024,14:30\n",
        zone,
    )

    assert rows[0].created_at == "2024-02-01 14:30:00"
    assert rows[0].trade_day == "2024-02-01 00:00:00"


def test_decimal_comma_prices(zone):
    rows = _normalize("Symbol;Price;Qty;Side;Time\nES;1,25;2;Buy;2024-01-02 09:30\n", zone)

    assert rows[0].execute_price == 1.25
    assert rows[0].size == 2.0
    assert rows[0].created_at == "2024-01-02 09:30:00"
    assert rows[0].trade_day == "2024-01-02 00:00:00"


def test_defaults_for_status_and_order_type(zone):
    rows = _normalize("Symbol,Price,Side,Qty,Time\nES,10,Buy,1,2024-01-02 09:30:00\n", zone)

    assert rows[0].status == "Filled"
    assert rows[0].value(TargetField.TYPE) == "Market"
    assert rows[0].identifier_synthesized is True


def test_missing_timestamps_warn_and_use_fallback_date(zone):
    rows = _normalize("Symbol,Price,Side,Qty\nES,10,Buy,1\n", zone)

    assert rows[0].created_at is None
    assert "Missing CreatedAt timestamp." in rows[0].warnings
    assert "Missing TradeDay." in rows[0].warnings

    rows = _normalize("Symbol,Price,Side,Qty\nES,10,Buy,1\n", zone, fallback_date=date(2024, 5, 6))

    assert rows[0].created_at == "2024-05-06 00:00:00"
    assert rows[0].trade_day == "2024-05-06 00:00:00"
    assert "Missing TradeDay." not in rows[0].warnings


def test_unrecognized_values_are_kept_and_flagged(zone):
    rows = _normalize(
        "Symbol,Price,Side,Qty,Type,Time\nES,10,flat,1,Trailing,2024-01-02 09:30:00\n", zone
    )

    assert rows[0].side == "flat"
    assert rows[0].order_type == "Trailing"
    assert "Unrecognized side 'flat'." in rows[0].warnings
    assert "Unrecognized order type 'Trailing'." in rows[0].warnings


def test_unparseable_cells_are_reported(zone):
    rows = _normalize("Symbol,Price,Side,Qty,Time\nES,abc,Buy,1,whenever\n", zone)

    assert rows[0].execute_price is None
    assert "Could not parse ExecutePrice value 'abc'." in rows[0].warnings
    assert "Could not parse CreatedAt value 'whenever'." in rows[0].warnings


def test_limit_stops_after_n_rows(zone):
    content = "Symbol,Price,Side\nES,1,Buy\nNQ,2,Buy\nYM,3,Buy\n"

    rows = _normalize(content, zone, limit=2)

    assert [row.contract_name for row in rows] == ["ES", "NQ"]
    assert [row.row_number for row in rows] == [1, 2]
