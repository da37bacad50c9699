from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z])(?=[A-Z])")


class TargetField(str, Enum):
    ID = "Id"
    ACCOUNT_NAME = "AccountName"
    CONTRACT_NAME = "ContractName"
    STATUS = "Status"
    TYPE = "Type"
    SIZE = "Size"
    SIDE = "Side"
    CREATED_AT = "CreatedAt"
    TRADE_DAY = "TradeDay"
    FILLED_AT = "FilledAt"
    CANCELLED_AT = "CancelledAt"
    STOP_PRICE = "StopPrice"
    LIMIT_PRICE = "LimitPrice"
    EXECUTE_PRICE = "ExecutePrice"
    EXIT_PRICE = "ExitPrice"
    FEES = "Fees"
    PNL = "PnL"
    POSITION_DISPOSITION = "PositionDisposition"
    CREATION_DISPOSITION = "CreationDisposition"
    REJECTION_REASON = "RejectionReason"
    EXCHANGE_ORDER_ID = "ExchangeOrderId"
    PLATFORM_ORDER_ID = "PlatformOrderId"

    @property
    def label(self) -> str:
        """Space separated lower-case form, e.g. ``contract name``."""
        if self is TargetField.PNL:
            return "pnl"
        return _CAMEL_BOUNDARY_RE.sub(" ", self.value).lower()

    @property
    def attribute(self) -> str:
        if self is TargetField.ID:
            return "identifier"
        if self is TargetField.TYPE:
            return "order_type"
        return self.label.replace(" ", "_")


class TradeSide(str, Enum):
    LONG = "long"
    SHORT = "short"


@dataclass(frozen=True)
class RawTable:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    delimiter: str = ","

    def record(self, row: tuple[str, ...]) -> dict[str, str]:
        out: dict[str, str] = {}
        for header, cell in zip(self.headers, row):
            if not out.get(header):
                out[header] = cell
        return out


@dataclass(frozen=True)
class NormalizedRow:
    row_number: int
    identifier: str
    account_name: str = ""
    contract_name: str = ""
    status: str = "Filled"
    order_type: str = "Market"
    size: float | None = None
    side: str | None = None
    created_at: str | None = None
    trade_day: str | None = None
    filled_at: str | None = None
    cancelled_at: str | None = None
    stop_price: float | None = None
    limit_price: float | None = None
    execute_price: float | None = None
    exit_price: float | None = None
    fees: float | None = None
    pnl: float | None = None
    position_disposition: str | None = None
    creation_disposition: str | None = None
    rejection_reason: str | None = None
    exchange_order_id: str | None = None
    platform_order_id: str | None = None
    identifier_synthesized: bool = False
    warnings: tuple[str, ...] = ()

    def value(self, target: TargetField):
        return getattr(self, target.attribute)

    @property
    def timestamp(self) -> str | None:
        return self.filled_at or self.created_at or self.trade_day


@dataclass(frozen=True)
class ReconstructedTrade:
    symbol: str
    side: TradeSide
    entry_price: float
    entry_time: str | None
    exit_price: float | None
    exit_time: str | None
    quantity: float
    fees: float = 0.0
    account_name: str = ""
    source_rows: tuple[int, ...] = ()
    identifiers: tuple[str, ...] = ()
    degenerate: bool = False
    notes: str | None = None

    @property
    def is_open(self) -> bool:
        return self.exit_price is None


@dataclass(frozen=True)
class PipelineStats:
    rows_processed: int
    total_rows: int
    columns_matched: int
    broker: str
    identifiers_synthesized: int
    identifiers_supplied: int
    synthesized_rows: tuple[int, ...] = ()
    delimiter: str = ","
    trades_reconstructed: int = 0


@dataclass(frozen=True)
class PipelineResult:
    trades: list[ReconstructedTrade]
    warnings: list[str]
    stats: PipelineStats
    header_mapping: dict[str, TargetField | None] = field(default_factory=dict)
    rows: list[NormalizedRow] = field(default_factory=list)

    def to_frame(self):
        from trade_journal.ingest.pipeline import trades_to_frame

        return trades_to_frame(self.trades)
