from __future__ import annotations

import pytest

from trade_journal.ingest.validators import (
    normalize_disposition,
    normalize_order_type,
    normalize_side,
    normalize_status,
    parse_number,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,25", 1.25),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1,234,567", 1234567.0),
        ("$(12.50)", -12.5),
        ("€ 1 234,5", 1234.5),
        ("0", 0.0),
        (7, 7.0),
    ],
)
def test_parse_number_handles_locales(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "nan", "inf", float("nan")])
def test_parse_number_returns_none_instead_of_zero(raw):
    assert parse_number(raw) is None


def test_normalize_side_aliases():
    assert normalize_side("buy") == "Buy"
    assert normalize_side("B") == "Buy"
    assert normalize_side("Long") == "Buy"
    assert normalize_side("bought") == "Buy"
    assert normalize_side("ask") == "Sell"
    assert normalize_side("SOLD") == "Sell"
    assert normalize_side(" short ") == "Sell"
    assert normalize_side("") is None
    assert normalize_side("flat") == "flat"


def test_normalize_order_type_and_status_defaults():
    assert normalize_order_type("") == "Market"
    assert normalize_order_type("MKT") == "Market"
    assert normalize_order_type("lmt") == "Limit"
    assert normalize_order_type("Stop Limit") == "StopLimit"
    assert normalize_order_type("STP LMT") == "StopLimit"
    assert normalize_order_type("Trailing") == "Trailing"
    assert normalize_status(None) == "Filled"
    assert normalize_status(" Cancelled ") == "Cancelled"


def test_normalize_disposition():
    assert normalize_disposition("Open") == "Opening"
    assert normalize_disposition("to close") == "Closing"
    assert normalize_disposition("Exit") == "Closing"
    assert normalize_disposition("weird") is None
    assert normalize_disposition("") is None
