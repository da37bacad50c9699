from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from trade_journal.config.settings import Settings, get_settings
from trade_journal.ingest.errors import EmptyFileError
from trade_journal.ingest.header_aliases import DEFAULT_RESOLVER, HeaderResolution, HeaderResolver
from trade_journal.ingest.identity import duplicate_identifiers
from trade_journal.ingest.models import (
    NormalizedRow,
    PipelineResult,
    PipelineStats,
    RawTable,
    ReconstructedTrade,
    TargetField,
)
from trade_journal.ingest.reconstruct import check_required_columns, reconstruct_trades
from trade_journal.ingest.row_normalizer import normalize_table
from trade_journal.ingest.tokenizer import tokenize
from trade_journal.utils.dates import reference_zone

logger = logging.getLogger(__name__)

TRADE_COLUMNS = [
    "symbol",
    "side",
    "entry_price",
    "entry_time",
    "exit_price",
    "exit_time",
    "quantity",
    "fees",
    "account_name",
    "identifiers",
    "source_rows",
    "degenerate",
    "notes",
]


@dataclass(frozen=True)
class NormalizationResult:
    rows: list[NormalizedRow]
    header_mapping: dict[str, TargetField | None]
    delimiter: str
    broker: str
    total_rows: int
    warnings: list[str]
    resolution: HeaderResolution | None = field(default=None, repr=False)


def _row_warnings(rows: Iterable[NormalizedRow]) -> list[str]:
    return [f"Row {row.row_number}: {warning}" for row in rows for warning in row.warnings]


def _load(
    content: str | bytes,
    manual_header_map: Mapping[str, Any] | None,
    settings: Settings,
    resolver: HeaderResolver,
) -> tuple[RawTable, HeaderResolution]:
    table = tokenize(content, sample_lines=settings.delimiter_sample_lines)
    resolution = resolver.resolve(table.headers, manual_header_map)
    return table, resolution


def _normalize(
    table: RawTable,
    resolution: HeaderResolution,
    settings: Settings,
    *,
    fallback_date: datetime | date | None,
    limit: int | None,
) -> tuple[list[NormalizedRow], list[str]]:
    rows = normalize_table(
        table,
        resolution,
        zone=reference_zone(settings.reference_timezone),
        fallback_date=fallback_date,
        limit=limit,
        day_first=resolution.day_first(settings.day_first),
    )
    warnings = [*resolution.warnings, *duplicate_identifiers(rows), *_row_warnings(rows)]
    return rows, warnings


def normalize_csv(
    content: str | bytes,
    *,
    manual_header_map: Mapping[str, Any] | None = None,
    fallback_date: datetime | date | None = None,
    limit: int | None = None,
    settings: Settings | None = None,
    resolver: HeaderResolver | None = None,
) -> NormalizationResult:
    """Tokenize, resolve headers and normalize rows without pairing them.

    Used for previews; ``limit`` caps the number of normalized rows.
    """
    settings = settings or get_settings()
    table, resolution = _load(content, manual_header_map, settings, resolver or DEFAULT_RESOLVER)
    rows, warnings = _normalize(table, resolution, settings, fallback_date=fallback_date, limit=limit)
    return NormalizationResult(
        rows=rows,
        header_mapping=dict(resolution.mapping),
        delimiter=table.delimiter,
        broker=resolution.broker,
        total_rows=len(table.rows),
        warnings=warnings,
        resolution=resolution,
    )


def import_trades(
    content: str | bytes,
    *,
    manual_header_map: Mapping[str, Any] | None = None,
    fallback_date: datetime | date | None = None,
    limit: int | None = None,
    settings: Settings | None = None,
    resolver: HeaderResolver | None = None,
) -> PipelineResult:
    """Run the full pipeline over one CSV export.

    Raises ``EmptyFileError`` for files without data rows, ``MappingError`` for
    invalid overrides and ``MissingColumnsError`` when the contract or price
    column cannot be resolved. Row-level problems are returned as warnings.
    """
    settings = settings or get_settings()
    table, resolution = _load(content, manual_header_map, settings, resolver or DEFAULT_RESOLVER)
    if not table.rows:
        raise EmptyFileError("CSV file has a header row but no data rows")
    check_required_columns(resolution)

    rows, warnings = _normalize(table, resolution, settings, fallback_date=fallback_date, limit=limit)
    trades, trade_warnings = reconstruct_trades(rows, resolution)

    synthesized_rows = tuple(row.row_number for row in rows if row.identifier_synthesized)
    stats = PipelineStats(
        rows_processed=len(rows),
        total_rows=len(table.rows),
        columns_matched=resolution.columns_matched,
        broker=resolution.broker,
        identifiers_synthesized=len(synthesized_rows),
        identifiers_supplied=len(rows) - len(synthesized_rows),
        synthesized_rows=synthesized_rows,
        delimiter=table.delimiter,
        trades_reconstructed=len(trades),
    )
    logger.info(
        "Imported %d trades from %d rows (broker=%s, delimiter=%r, synthesized ids=%d, warnings=%d)",
        len(trades),
        len(rows),
        stats.broker,
        stats.delimiter,
        stats.identifiers_synthesized,
        len(warnings) + len(trade_warnings),
    )
    return PipelineResult(
        trades=trades,
        warnings=[*warnings, *trade_warnings],
        stats=stats,
        header_mapping=dict(resolution.mapping),
        rows=rows,
    )


def import_trades_file(path: str | Path, **kwargs: Any) -> PipelineResult:
    return import_trades(Path(path).read_bytes(), **kwargs)


def trades_to_frame(trades: Iterable[ReconstructedTrade]) -> pd.DataFrame:
    records = []
    for trade in trades:
        record = asdict(trade)
        record["side"] = trade.side.value
        record["identifiers"] = ", ".join(trade.identifiers)
        record["source_rows"] = list(trade.source_rows)
        records.append(record)
    return pd.DataFrame(records, columns=TRADE_COLUMNS)


def rows_to_frame(rows: Iterable[NormalizedRow]) -> pd.DataFrame:
    columns = ["row_number", *(target.value for target in TargetField), "warnings"]
    records = []
    for row in rows:
        record: dict[str, Any] = {"row_number": row.row_number}
        for target in TargetField:
            record[target.value] = row.value(target)
        record["warnings"] = "; ".join(row.warnings)
        records.append(record)
    return pd.DataFrame(records, columns=columns)
