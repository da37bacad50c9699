"""Broker-specific export formats.

Each adapter is a plain record pairing a header-signature predicate with a row
mapper. Row mappers return raw (unparsed) cell text keyed by canonical field;
parsing happens in the shared field normalizer.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from trade_journal.ingest.models import TargetField
from trade_journal.ingest.validators import BUY, CLOSING, OPENING, SELL, clean_text, parse_number

RowMapper = Callable[[Mapping[str, str]], dict[TargetField, str]]
SignaturePredicate = Callable[[Sequence[str]], bool]


def signature_key(header: str) -> str:
    return " ".join(str(header).replace("\ufeff", "").strip().lower().split())


def requires_headers(*required: str) -> SignaturePredicate:
    required_keys = frozenset(signature_key(header) for header in required)

    def _matches(headers: Sequence[str]) -> bool:
        present = {signature_key(header) for header in headers}
        return required_keys.issubset(present)

    return _matches


def _keyed(record: Mapping[str, str]) -> dict[str, str]:
    keyed: dict[str, str] = {}
    for header, cell in record.items():
        key = signature_key(header)
        if not keyed.get(key):
            keyed[key] = clean_text(cell)
    return keyed


def _format_number(value: float) -> str:
    return repr(float(value))


@dataclass(frozen=True)
class BrokerAdapter:
    name: str
    matches: SignaturePredicate
    map_row: RowMapper
    header_map: Mapping[str, TargetField] = field(default_factory=dict)
    complete_trades: bool = False
    day_first: bool | None = None

    def header_field(self, header: str) -> TargetField | None:
        key = signature_key(header)
        for source, target in self.header_map.items():
            if signature_key(source) == key:
                return target
        return None


def preset_mapper(header_map: Mapping[str, TargetField]) -> RowMapper:
    """Row mapper that copies cells straight through a fixed header table."""
    keyed_map = {signature_key(header): target for header, target in header_map.items()}

    def _map_row(record: Mapping[str, str]) -> dict[TargetField, str]:
        out: dict[TargetField, str] = {}
        for key, cell in _keyed(record).items():
            target = keyed_map.get(key)
            if target is not None and cell and not out.get(target):
                out[target] = cell
        return out

    return _map_row


# -- Topstep trade-performance export (one row per round trip) ---------------

TOPSTEP_HEADERS = (
    "Id",
    "ContractName",
    "EnteredAt",
    "ExitedAt",
    "EntryPrice",
    "ExitPrice",
    "Fees",
    "PnL",
    "Size",
    "Type",
    "TradeDay",
    "TradeDuration",
    "Commissions",
)

TOPSTEP_HEADER_MAP = MappingProxyType(
    {
        "Id": TargetField.ID,
        "ContractName": TargetField.CONTRACT_NAME,
        "EnteredAt": TargetField.CREATED_AT,
        "ExitedAt": TargetField.FILLED_AT,
        "EntryPrice": TargetField.EXECUTE_PRICE,
        "ExitPrice": TargetField.EXIT_PRICE,
        "Fees": TargetField.FEES,
        "Commissions": TargetField.FEES,
        "PnL": TargetField.PNL,
        "Size": TargetField.SIZE,
        "Type": TargetField.SIDE,
        "TradeDay": TargetField.TRADE_DAY,
    }
)


def direction_to_side(value: str | None) -> str:
    normalized = clean_text(value).lower()
    if normalized in {"long", "buy", "b"}:
        return BUY
    if normalized in {"short", "sell", "s"}:
        return SELL
    return ""


def map_topstep_row(record: Mapping[str, str], account_name: str = "Topstep") -> dict[TargetField, str]:
    cells = _keyed(record)
    trade_id = cells.get("id", "")

    fee_parts = [parse_number(cells.get("fees")), parse_number(cells.get("commissions"))]
    known_fees = [abs(part) for part in fee_parts if part is not None]
    fees = _format_number(sum(known_fees)) if known_fees else ""

    # "Type" carries the trade direction here, not the order type.
    return {
        TargetField.ID: trade_id,
        TargetField.ACCOUNT_NAME: account_name,
        TargetField.CONTRACT_NAME: cells.get("contractname", ""),
        TargetField.STATUS: "Filled",
        TargetField.TYPE: "Market",
        TargetField.SIZE: cells.get("size", ""),
        TargetField.SIDE: direction_to_side(cells.get("type")),
        TargetField.CREATED_AT: cells.get("enteredat", ""),
        TargetField.TRADE_DAY: cells.get("tradeday", ""),
        TargetField.FILLED_AT: cells.get("exitedat", ""),
        TargetField.EXECUTE_PRICE: cells.get("entryprice", ""),
        TargetField.EXIT_PRICE: cells.get("exitprice", ""),
        TargetField.FEES: fees,
        TargetField.PNL: cells.get("pnl", ""),
        TargetField.POSITION_DISPOSITION: "Closed",
        TargetField.CREATION_DISPOSITION: "Imported",
        TargetField.PLATFORM_ORDER_ID: trade_id,
    }


TOPSTEP = BrokerAdapter(
    name="topstep",
    matches=requires_headers(*TOPSTEP_HEADERS),
    map_row=map_topstep_row,
    header_map=TOPSTEP_HEADER_MAP,
    complete_trades=True,
    day_first=False,
)


# -- NinjaTrader order / execution grid --------------------------------------

NINJATRADER_HEADER_MAP = MappingProxyType(
    {
        "Instrument": TargetField.CONTRACT_NAME,
        "Action": TargetField.SIDE,
        "Qty": TargetField.SIZE,
        "Quantity": TargetField.SIZE,
        "Avg fill price": TargetField.EXECUTE_PRICE,
        "Price": TargetField.EXECUTE_PRICE,
        "Time": TargetField.CREATED_AT,
        "Type": TargetField.TYPE,
        "Order ID": TargetField.ID,
        "Account": TargetField.ACCOUNT_NAME,
        "State": TargetField.STATUS,
        "Limit": TargetField.LIMIT_PRICE,
        "Stop": TargetField.STOP_PRICE,
        "E/X": TargetField.POSITION_DISPOSITION,
        "Commission": TargetField.FEES,
    }
)

NINJATRADER = BrokerAdapter(
    name="ninjatrader",
    matches=requires_headers("Instrument", "Avg fill price"),
    map_row=preset_mapper(NINJATRADER_HEADER_MAP),
    header_map=NINJATRADER_HEADER_MAP,
)


# -- Tradovate orders export -------------------------------------------------

TRADOVATE_HEADER_MAP = MappingProxyType(
    {
        "Contract": TargetField.CONTRACT_NAME,
        "B/S": TargetField.SIDE,
        "filledQty": TargetField.SIZE,
        "Filled Qty": TargetField.SIZE,
        "Contracts": TargetField.SIZE,
        "avgPrice": TargetField.EXECUTE_PRICE,
        "Avg Fill Price": TargetField.EXECUTE_PRICE,
        "Price": TargetField.EXECUTE_PRICE,
        "Fill Time": TargetField.FILLED_AT,
        "Timestamp": TargetField.CREATED_AT,
        "Time": TargetField.CREATED_AT,
        "Date": TargetField.TRADE_DAY,
        "orderId": TargetField.ID,
        "Order ID": TargetField.ID,
        "Account": TargetField.ACCOUNT_NAME,
        "Status": TargetField.STATUS,
        "Type": TargetField.TYPE,
        "Limit Price": TargetField.LIMIT_PRICE,
        "Stop Price": TargetField.STOP_PRICE,
    }
)

TRADOVATE = BrokerAdapter(
    name="tradovate",
    matches=requires_headers("Contract", "B/S"),
    map_row=preset_mapper(TRADOVATE_HEADER_MAP),
    header_map=TRADOVATE_HEADER_MAP,
    day_first=False,
)


# -- Interactive Brokers activity statement (trades section) ----------------

INTERACTIVE_BROKERS_HEADER_MAP = MappingProxyType(
    {
        "Symbol": TargetField.CONTRACT_NAME,
        "Quantity": TargetField.SIZE,
        "T. Price": TargetField.EXECUTE_PRICE,
        "Buy/Sell": TargetField.SIDE,
        "Date/Time": TargetField.CREATED_AT,
        "Comm/Fee": TargetField.FEES,
        "Realized P/L": TargetField.PNL,
        "Code": TargetField.POSITION_DISPOSITION,
        "Account": TargetField.ACCOUNT_NAME,
    }
)

_IB_CODE_SPLIT_RE = re.compile(r"[;,\s]+")


def map_interactive_brokers_row(record: Mapping[str, str]) -> dict[TargetField, str]:
    cells = _keyed(record)
    raw_quantity = cells.get("quantity", "")
    quantity = parse_number(raw_quantity)

    # Sells are reported as negative quantities when no Buy/Sell column exists.
    side = cells.get("buy/sell", "")
    if not side and quantity:
        side = BUY if quantity > 0 else SELL

    codes = {code.upper() for code in _IB_CODE_SPLIT_RE.split(cells.get("code", "")) if code}
    disposition = ""
    if "O" in codes:
        disposition = OPENING
    elif "C" in codes:
        disposition = CLOSING

    fee = parse_number(cells.get("comm/fee"))
    return {
        TargetField.ACCOUNT_NAME: cells.get("account", ""),
        TargetField.CONTRACT_NAME: cells.get("symbol", ""),
        TargetField.SIZE: _format_number(abs(quantity)) if quantity is not None else raw_quantity,
        TargetField.SIDE: side,
        TargetField.CREATED_AT: cells.get("date/time", "").replace(",", " "),
        TargetField.EXECUTE_PRICE: cells.get("t. price", ""),
        TargetField.FEES: _format_number(abs(fee)) if fee is not None else "",
        TargetField.PNL: cells.get("realized p/l", ""),
        TargetField.POSITION_DISPOSITION: disposition,
    }


INTERACTIVE_BROKERS = BrokerAdapter(
    name="interactive_brokers",
    matches=requires_headers("Symbol", "T. Price"),
    map_row=map_interactive_brokers_row,
    header_map=INTERACTIVE_BROKERS_HEADER_MAP,
    day_first=False,
)


BROKER_ADAPTERS: tuple[BrokerAdapter, ...] = (
    TOPSTEP,
    NINJATRADER,
    TRADOVATE,
    INTERACTIVE_BROKERS,
)


def get_adapter(name: str) -> BrokerAdapter | None:
    key = name.strip().lower()
    for adapter in BROKER_ADAPTERS:
        if adapter.name == key:
            return adapter
    return None
