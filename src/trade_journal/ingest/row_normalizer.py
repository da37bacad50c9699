from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from trade_journal.ingest.header_aliases import HeaderResolution
from trade_journal.ingest.identity import assign_identifier
from trade_journal.ingest.models import NormalizedRow, RawTable, TargetField
from trade_journal.ingest.timestamps import normalize_timestamp
from trade_journal.ingest.validators import (
    ORDER_TYPES,
    SIDES,
    clean_text,
    normalize_order_type,
    normalize_side,
    normalize_status,
    parse_number,
)
from trade_journal.utils.dates import day_start, format_canonical, parse_canonical, to_reference

logger = logging.getLogger(__name__)

_NUMERIC_FIELDS = (
    TargetField.STOP_PRICE,
    TargetField.LIMIT_PRICE,
    TargetField.EXIT_PRICE,
    TargetField.FEES,
    TargetField.PNL,
)


def _number(cells: dict[TargetField, str], target: TargetField, warnings: list[str]) -> float | None:
    raw = cells.get(target, "")
    value = parse_number(raw)
    if value is None and raw:
        warnings.append(f"Could not parse {target.value} value '{raw}'.")
    return value


def _optional_text(cells: dict[TargetField, str], target: TargetField) -> str | None:
    return clean_text(cells.get(target)) or None


def normalize_cells(
    cells: dict[TargetField, str],
    row_number: int,
    *,
    zone: ZoneInfo,
    fallback_date: datetime | date | None = None,
    day_first: bool = True,
) -> NormalizedRow:
    """Turn one row of raw canonical cells into a NormalizedRow with warnings."""
    warnings: list[str] = []

    trade_day, issues = normalize_timestamp(
        cells.get(TargetField.TRADE_DAY),
        zone,
        fallback_date=fallback_date,
        day_first=day_first,
        label=TargetField.TRADE_DAY.value,
    )
    warnings.extend(issues)
    if trade_day is not None:
        trade_day = day_start(trade_day)

    # A bare time of day borrows its date from TradeDay, then the caller's fallback.
    day_anchor: datetime | date | None = (
        parse_canonical(trade_day, zone) if trade_day is not None else fallback_date
    )
    created_at, issues = normalize_timestamp(
        cells.get(TargetField.CREATED_AT),
        zone,
        fallback_date=day_anchor,
        day_first=day_first,
        label=TargetField.CREATED_AT.value,
    )
    warnings.extend(issues)

    fill_anchor = parse_canonical(created_at, zone) if created_at is not None else day_anchor
    filled_at, issues = normalize_timestamp(
        cells.get(TargetField.FILLED_AT),
        zone,
        fallback_date=fill_anchor,
        day_first=day_first,
        label=TargetField.FILLED_AT.value,
    )
    warnings.extend(issues)

    cancelled_at, issues = normalize_timestamp(
        cells.get(TargetField.CANCELLED_AT),
        zone,
        fallback_date=fill_anchor,
        day_first=day_first,
        label=TargetField.CANCELLED_AT.value,
    )
    warnings.extend(issues)

    if created_at is None:
        created_at = filled_at
    if filled_at is None:
        filled_at = created_at
    if created_at is None:
        warnings.append("Missing CreatedAt timestamp.")
        if fallback_date is not None:
            created_at = format_canonical(to_reference(fallback_date, zone))
    if trade_day is None:
        if created_at is not None:
            trade_day = day_start(created_at)
        else:
            warnings.append("Missing TradeDay.")

    size = _number(cells, TargetField.SIZE, warnings)
    if size is None:
        if not cells.get(TargetField.SIZE):
            warnings.append("Missing size.")
    elif size <= 0:
        warnings.append("Size must be greater than zero.")

    execute_price = _number(cells, TargetField.EXECUTE_PRICE, warnings)
    if execute_price is None:
        warnings.append("Missing execute price.")
    elif execute_price <= 0:
        warnings.append("Execute price must be greater than zero.")

    numbers = {target: _number(cells, target, warnings) for target in _NUMERIC_FIELDS}

    side = normalize_side(cells.get(TargetField.SIDE))
    if side is None:
        warnings.append("Missing side.")
    elif side not in SIDES:
        warnings.append(f"Unrecognized side '{side}'.")

    order_type = normalize_order_type(cells.get(TargetField.TYPE))
    if order_type not in ORDER_TYPES:
        warnings.append(f"Unrecognized order type '{order_type}'.")

    row = NormalizedRow(
        row_number=row_number,
        identifier=clean_text(cells.get(TargetField.ID)),
        account_name=clean_text(cells.get(TargetField.ACCOUNT_NAME)),
        contract_name=clean_text(cells.get(TargetField.CONTRACT_NAME)),
        status=normalize_status(cells.get(TargetField.STATUS)),
        order_type=order_type,
        size=size,
        side=side,
        created_at=created_at,
        trade_day=trade_day,
        filled_at=filled_at,
        cancelled_at=cancelled_at,
        stop_price=numbers[TargetField.STOP_PRICE],
        limit_price=numbers[TargetField.LIMIT_PRICE],
        execute_price=execute_price,
        exit_price=numbers[TargetField.EXIT_PRICE],
        fees=numbers[TargetField.FEES],
        pnl=numbers[TargetField.PNL],
        position_disposition=_optional_text(cells, TargetField.POSITION_DISPOSITION),
        creation_disposition=_optional_text(cells, TargetField.CREATION_DISPOSITION),
        rejection_reason=_optional_text(cells, TargetField.REJECTION_REASON),
        exchange_order_id=_optional_text(cells, TargetField.EXCHANGE_ORDER_ID),
        platform_order_id=_optional_text(cells, TargetField.PLATFORM_ORDER_ID),
        warnings=tuple(warnings),
    )
    return assign_identifier(row)


def normalize_table(
    table: RawTable,
    resolution: HeaderResolution,
    *,
    zone: ZoneInfo,
    fallback_date: datetime | date | None = None,
    limit: int | None = None,
    day_first: bool = True,
) -> list[NormalizedRow]:
    rows: list[NormalizedRow] = []
    for row_number, raw_row in enumerate(table.rows, start=1):
        if limit is not None and len(rows) >= limit:
            break
        if not any(raw_row):
            continue
        cells = resolution.extract(raw_row)
        rows.append(
            normalize_cells(
                cells,
                row_number,
                zone=zone,
                fallback_date=fallback_date,
                day_first=day_first,
            )
        )

    logger.debug(
        "Normalized %d of %d rows (%d with warnings)",
        len(rows),
        len(table.rows),
        sum(1 for row in rows if row.warnings),
    )
    return rows
