from __future__ import annotations

import pytest

from trade_journal.ingest.broker_adapters import (
    BROKER_ADAPTERS,
    INTERACTIVE_BROKERS,
    NINJATRADER,
    TOPSTEP,
    TOPSTEP_HEADERS,
    TRADOVATE,
    get_adapter,
    map_interactive_brokers_row,
    map_topstep_row,
)
from trade_journal.ingest.models import TargetField


def test_registry_contains_known_brokers():
    assert [adapter.name for adapter in BROKER_ADAPTERS] == [
        "topstep",
        "ninjatrader",
        "tradovate",
        "interactive_brokers",
    ]
    assert get_adapter(" TopStep ") is TOPSTEP
    assert get_adapter("unknown") is None


def test_topstep_signature_requires_every_header():
    assert TOPSTEP.matches([header.lower() for header in TOPSTEP_HEADERS])
    assert TOPSTEP.matches([f"  {header} " for header in TOPSTEP_HEADERS])
    assert not TOPSTEP.matches([header for header in TOPSTEP_HEADERS if header != "PnL"])


def test_map_topstep_row_translates_direction_and_fees():
    record = {
        "Id": "1503937614",
        "ContractName": "MESZ5",
        "EnteredAt": "10/28/2025 00:36:30 +01:00",
        "ExitedAt": "10/28/2025 00:41:12 +01:00",
        "EntryPrice": "6925.25",
        "ExitPrice": "6927.50",
        "Fees": "1.24",
        "PnL": "11.25",
        "Size": "2",
        "Type": "Short",
        "TradeDay": "10/28/2025 00:00:00 -05:00",
        "TradeDuration": "00:04:42",
        "Commissions": "0.50",
    }

    cells = map_topstep_row(record)

    assert cells[TargetField.SIDE] == "Sell"
    assert float(cells[TargetField.FEES]) == pytest.approx(1.74)
    assert cells[TargetField.STATUS] == "Filled"
    assert cells[TargetField.TYPE] == "Market"
    assert cells[TargetField.POSITION_DISPOSITION] == "Closed"
    assert cells[TargetField.CREATION_DISPOSITION] == "Imported"
    assert cells[TargetField.PLATFORM_ORDER_ID] == "1503937614"
    assert cells[TargetField.EXECUTE_PRICE] == "6925.25"
    assert cells[TargetField.EXIT_PRICE] == "6927.50"
    assert cells[TargetField.PNL] == "11.25"
    assert cells[TargetField.CREATED_AT] == "10/28/2025 00:36:30 +01:00"
    assert cells[TargetField.FILLED_AT] == "10/28/2025 00:41:12 +01:00"


def test_map_topstep_row_leaves_fees_blank_when_absent():
    cells = map_topstep_row({"Id": "1", "Type": "Long", "Fees": "", "Commissions": ""})

    assert cells[TargetField.SIDE] == "Buy"
    assert cells[TargetField.FEES] == ""


def test_preset_adapters_match_their_signatures():
    assert NINJATRADER.matches(["Instrument", "Action", "Qty", "Avg fill price", "Time"])
    assert TRADOVATE.matches(["orderId", "Contract", "B/S", "filledQty", "avgPrice"])
    assert INTERACTIVE_BROKERS.matches(["Symbol", "Date/Time", "Quantity", "T. Price"])
    assert not NINJATRADER.matches(["Instrument", "Price"])


def test_preset_mapper_copies_cells_by_header():
    cells = NINJATRADER.map_row(
        {"Instrument": "ES 03-24", "Action": "Buy", "Qty": "1", "Avg fill price": "4800.25", "E/X": "Entry"}
    )

    assert cells == {
        TargetField.CONTRACT_NAME: "ES 03-24",
        TargetField.SIDE: "Buy",
        TargetField.SIZE: "1",
        TargetField.EXECUTE_PRICE: "4800.25",
        TargetField.POSITION_DISPOSITION: "Entry",
    }
    assert NINJATRADER.header_field("avg FILL price") is TargetField.EXECUTE_PRICE


def test_interactive_brokers_side_from_quantity_sign():
    cells = map_interactive_brokers_row(
        {
            "Symbol": "AAPL",
            "Date/Time": "2024-01-05, 10:30:00",
            "Quantity": "-10",
            "T. Price": "190.5",
            "Comm/Fee": "-1.0",
            "Code": "C;P",
            "Realized P/L": "-42.5",
        }
    )

    assert cells[TargetField.SIDE] == "Sell"
    assert cells[TargetField.SIZE] == "10.0"
    assert cells[TargetField.FEES] == "1.0"
    assert cells[TargetField.POSITION_DISPOSITION] == "Closing"
    assert cells[TargetField.CREATED_AT] == "2024-01-05  10:30:00"
    assert cells[TargetField.PNL] == "-42.5"


def test_interactive_brokers_explicit_side_wins():
    cells = map_interactive_brokers_row(
        {"Symbol": "AAPL", "Quantity": "10", "T. Price": "190.5", "Buy/Sell": "BUY", "Code": "O"}
    )

    assert cells[TargetField.SIDE] == "BUY"
    assert cells[TargetField.POSITION_DISPOSITION] == "Opening"
