from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import replace
from enum import Enum
from hashlib import sha256
from typing import Any

from trade_journal.ingest.models import NormalizedRow

SYNTHETIC_ID_PREFIX = "SYN-"
SYNTHETIC_ID_LENGTH = 16


def _normalize_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip().upper()


def _normalize_float(value: Any) -> str:
    if value is None:
        return ""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return ""
    if parsed == 0:
        return "0"
    return f"{parsed:.10f}".rstrip("0").rstrip(".")


def synthesize_identifier(row: NormalizedRow) -> str:
    """Stable id for rows without one; identical fills share an id."""
    parts = [
        _normalize_text(row.contract_name),
        _normalize_float(row.execute_price),
        _normalize_float(row.size),
        _normalize_text(row.side),
        _normalize_text(row.created_at),
    ]
    digest = sha256("|".join(parts).encode("utf-8")).hexdigest()
    return f"{SYNTHETIC_ID_PREFIX}{digest[:SYNTHETIC_ID_LENGTH]}"


def assign_identifier(row: NormalizedRow) -> NormalizedRow:
    for candidate in (row.identifier, row.exchange_order_id, row.platform_order_id):
        text = (candidate or "").strip()
        if text:
            return replace(row, identifier=text, identifier_synthesized=False)

    synthesized = synthesize_identifier(row)
    return replace(
        row,
        identifier=synthesized,
        identifier_synthesized=True,
        warnings=(*row.warnings, f"No identifier column value; synthesized {synthesized}."),
    )


def duplicate_identifiers(rows: Iterable[NormalizedRow]) -> list[str]:
    """File-level warnings for synthesized ids shared by several rows."""
    rows = list(rows)
    counts = Counter(row.identifier for row in rows if row.identifier_synthesized)
    warnings: list[str] = []
    for identifier, count in counts.items():
        if count < 2:
            continue
        row_numbers = ", ".join(
            str(row.row_number) for row in rows if row.identifier == identifier
        )
        warnings.append(
            f"Rows {row_numbers} are identical fills and share synthesized identifier {identifier}."
        )
    return warnings
