"""Pair normalized fills into trades.

Two row shapes are supported. Complete-trade exports carry entry and exit on one
row. Fill exports carry one execution per row and are paired Opening -> Closing
per contract, earliest unmatched opening first, exact size only.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from trade_journal.ingest.errors import MissingColumnsError
from trade_journal.ingest.header_aliases import HeaderResolution
from trade_journal.ingest.models import NormalizedRow, ReconstructedTrade, TargetField, TradeSide
from trade_journal.ingest.validators import (
    BUY,
    CLOSING,
    DEFAULT_STATUS,
    OPENING,
    SELL,
    normalize_disposition,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (TargetField.CONTRACT_NAME, TargetField.EXECUTE_PRICE)

OPEN_POSITION_NOTE = "Imported as open position"
DEGENERATE_NOTE = "Closing fill without a matching opening fill"
PNL_NOTE_FORMAT = "P&L: ${:.2f}"


@dataclass(slots=True)
class OpenFill:
    row: NormalizedRow
    slot: int
    matched: bool = False


def check_required_columns(resolution: HeaderResolution) -> None:
    missing = resolution.missing(REQUIRED_FIELDS)
    if missing:
        raise MissingColumnsError([target.value for target in missing], resolution.headers)


class OrderReconstructor:
    def __init__(self, resolution: HeaderResolution) -> None:
        self._resolution = resolution
        self._open_fills: dict[str, list[OpenFill]] = {}
        self._slots: list[ReconstructedTrade | None] = []
        self.warnings: list[str] = []

    def _warn(self, row: NormalizedRow, message: str) -> None:
        self.warnings.append(f"Row {row.row_number}: {message}")

    def _trade_side(self, row: NormalizedRow, side: str | None) -> TradeSide:
        if side == SELL:
            return TradeSide.SHORT
        if side != BUY:
            self._warn(row, f"Side '{side or ''}' is not Buy or Sell; trade recorded as long.")
        return TradeSide.LONG

    @staticmethod
    def _quantity(row: NormalizedRow) -> float:
        return abs(row.size) if row.size else 1.0

    @staticmethod
    def _fees(*rows: NormalizedRow) -> float:
        return sum(abs(row.fees) for row in rows if row.fees is not None)

    @staticmethod
    def _symbol(row: NormalizedRow) -> str:
        return row.contract_name.upper()

    @staticmethod
    def _pnl_note(row: NormalizedRow) -> str | None:
        if not row.pnl:
            return None
        return PNL_NOTE_FORMAT.format(row.pnl)

    def _has_symbol_and_price(self, row: NormalizedRow) -> bool:
        if row.contract_name and row.execute_price is not None:
            return True
        self._warn(row, "Missing contract name or execute price; row skipped.")
        return False

    def _is_filled(self, row: NormalizedRow) -> bool:
        if row.status.strip().lower() == DEFAULT_STATUS.lower():
            return True
        self._warn(row, f"Status '{row.status}' is not {DEFAULT_STATUS}; row skipped.")
        return False

    def reconstruct(self, rows: Sequence[NormalizedRow]) -> list[ReconstructedTrade]:
        check_required_columns(self._resolution)
        if self._resolution.complete_trades:
            self._process_complete_trades(rows)
        elif TargetField.POSITION_DISPOSITION in self._resolution.resolved_fields:
            self._process_fills(rows)
        else:
            for row in rows:
                if self._is_filled(row) and self._has_symbol_and_price(row):
                    self._slots.append(self._open_trade(row))

        trades = [trade for trade in self._slots if trade is not None]
        logger.debug("Reconstructed %d trades from %d rows", len(trades), len(rows))
        return trades

    # -- complete-trade rows ------------------------------------------------

    def _process_complete_trades(self, rows: Sequence[NormalizedRow]) -> None:
        for row in rows:
            if not self._has_symbol_and_price(row):
                continue
            entry_time = row.created_at or row.trade_day
            exit_time = row.filled_at if row.exit_price is not None else None
            if entry_time and exit_time and exit_time < entry_time:
                self._warn(
                    row,
                    f"Exit time {exit_time} is earlier than entry time {entry_time}; no trade created.",
                )
                continue
            self._slots.append(
                ReconstructedTrade(
                    symbol=self._symbol(row),
                    side=self._trade_side(row, row.side),
                    entry_price=row.execute_price,
                    entry_time=entry_time,
                    exit_price=row.exit_price,
                    exit_time=exit_time,
                    quantity=self._quantity(row),
                    fees=self._fees(row),
                    account_name=row.account_name,
                    source_rows=(row.row_number,),
                    identifiers=(row.identifier,),
                    notes=self._pnl_note(row) if row.exit_price is not None else OPEN_POSITION_NOTE,
                )
            )

    # -- fill rows -----------------------------------------------------------

    def _process_fills(self, rows: Sequence[NormalizedRow]) -> None:
        # Timestamp-less rows sort last; sorted() keeps file order for ties.
        ordered = sorted(rows, key=lambda row: (row.timestamp is None, row.timestamp or ""))
        for row in ordered:
            if not self._is_filled(row) or not self._has_symbol_and_price(row):
                continue

            disposition = normalize_disposition(row.position_disposition)
            if disposition == OPENING:
                self._open_fills.setdefault(self._symbol(row), []).append(
                    OpenFill(row=row, slot=len(self._slots))
                )
                self._slots.append(None)
            elif disposition == CLOSING:
                self._close_fill(row)
            else:
                self._warn(
                    row,
                    f"Unknown position disposition '{row.position_disposition or ''}'; row skipped.",
                )

        for queue in self._open_fills.values():
            for open_fill in queue:
                if not open_fill.matched:
                    self._warn(open_fill.row, "Opening fill has no closing fill; imported as open position.")
                    self._slots[open_fill.slot] = self._open_trade(open_fill.row)

    def _close_fill(self, row: NormalizedRow) -> None:
        queue = self._open_fills.get(self._symbol(row), [])
        for open_fill in queue:
            opening = open_fill.row
            if open_fill.matched or opening.side == row.side:
                continue
            # Exact size only; a missing size never matches.
            if row.size is None or opening.size != row.size:
                continue
            open_fill.matched = True
            self._slots[open_fill.slot] = ReconstructedTrade(
                symbol=self._symbol(opening),
                side=self._trade_side(opening, opening.side),
                entry_price=opening.execute_price,
                entry_time=opening.timestamp,
                exit_price=row.execute_price,
                exit_time=row.timestamp,
                quantity=self._quantity(opening),
                fees=self._fees(opening, row),
                account_name=opening.account_name or row.account_name,
                source_rows=(opening.row_number, row.row_number),
                identifiers=(opening.identifier, row.identifier),
            )
            return

        # Partial closes are not netted; the fill stands alone as a zero-length trade.
        self._warn(row, "Closing fill has no matching opening fill; recorded as a zero-length trade.")
        self._slots.append(
            ReconstructedTrade(
                symbol=self._symbol(row),
                side=self._trade_side(row, row.side),
                entry_price=row.execute_price,
                entry_time=row.timestamp,
                exit_price=row.execute_price,
                exit_time=row.timestamp,
                quantity=self._quantity(row),
                fees=self._fees(row),
                account_name=row.account_name,
                source_rows=(row.row_number,),
                identifiers=(row.identifier,),
                degenerate=True,
                notes=DEGENERATE_NOTE,
            )
        )

    def _open_trade(self, row: NormalizedRow) -> ReconstructedTrade:
        return ReconstructedTrade(
            symbol=self._symbol(row),
            side=self._trade_side(row, row.side),
            entry_price=row.execute_price,
            entry_time=row.timestamp,
            exit_price=None,
            exit_time=None,
            quantity=self._quantity(row),
            fees=self._fees(row),
            account_name=row.account_name,
            source_rows=(row.row_number,),
            identifiers=(row.identifier,),
            notes=OPEN_POSITION_NOTE,
        )


def reconstruct_trades(
    rows: Sequence[NormalizedRow], resolution: HeaderResolution
) -> tuple[list[ReconstructedTrade], list[str]]:
    reconstructor = OrderReconstructor(resolution)
    trades = reconstructor.reconstruct(rows)
    return trades, reconstructor.warnings
