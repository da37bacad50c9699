from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from trade_journal.ingest.broker_adapters import BROKER_ADAPTERS, BrokerAdapter
from trade_journal.ingest.errors import MappingError
from trade_journal.ingest.models import TargetField
from trade_journal.ingest.timestamps import merge_date_and_time

logger = logging.getLogger(__name__)

UNKNOWN_BROKER = "unknown"

FIELD_ALIASES: Mapping[TargetField, tuple[str, ...]] = MappingProxyType(
    {
        TargetField.ID: ("id", "trade id", "order id", "orderid", "transaction id", "ticket"),
        TargetField.ACCOUNT_NAME: ("account", "account name", "account id", "acct"),
        TargetField.CONTRACT_NAME: (
            "symbol",
            "ticker",
            "instrument",
            "contract",
            "market",
            "product",
            "asset",
        ),
        TargetField.STATUS: ("status", "order status", "state", "order state"),
        TargetField.TYPE: ("type", "order type", "order_type", "market/limit", "mkt/lim", "order kind"),
        TargetField.SIZE: ("qty", "quantity", "contracts", "shares", "lot", "lots", "volume", "filled qty"),
        TargetField.SIDE: (
            "side",
            "buy/sell",
            "b/s",
            "action",
            "direction",
            "longshort",
            "long/short",
            "trade type",
        ),
        TargetField.CREATED_AT: (
            "entry time",
            "entered at",
            "enteredat",
            "creation time",
            "created",
            "submitted at",
            "time",
            "date/time",
            "order time",
            "order date",
            "time placed",
        ),
        TargetField.TRADE_DAY: ("trade date", "trading date", "session date", "day", "date"),
        TargetField.FILLED_AT: (
            "exit time",
            "exited at",
            "exitedat",
            "fill time",
            "filled time",
            "closed at",
            "closed time",
            "execution time",
            "executed at",
        ),
        TargetField.CANCELLED_AT: ("cancelled at", "cancel time", "cancelled", "canceled at"),
        TargetField.STOP_PRICE: ("stop", "stp", "sl", "stop price", "stop loss"),
        TargetField.LIMIT_PRICE: ("limit", "lmt", "tp", "target price", "limit price"),
        TargetField.EXECUTE_PRICE: (
            "avg price",
            "fill price",
            "execution price",
            "price",
            "avg fill",
            "avg fill price",
            "entry price",
            "entryprice",
        ),
        TargetField.EXIT_PRICE: ("exit price", "exitprice", "close price", "closing price"),
        TargetField.FEES: ("fees", "fee", "commission", "commissions", "comm", "comm/fee"),
        TargetField.PNL: (
            "pnl",
            "p&l",
            "p/l",
            "profit",
            "profit/loss",
            "net pnl",
            "net p&l",
            "realized pnl",
            "realized p&l",
            "realized p/l",
            "net profit",
        ),
        TargetField.POSITION_DISPOSITION: (
            "position disposition",
            "position state",
            "open/close",
            "open close",
            "e/x",
            "effect",
        ),
        TargetField.CREATION_DISPOSITION: ("creation disposition", "creation state", "order source"),
        TargetField.REJECTION_REASON: ("rejection reason", "reject reason", "error", "error message"),
        TargetField.EXCHANGE_ORDER_ID: ("exec id", "exchange id", "order id (exchange)", "exchange order id"),
        TargetField.PLATFORM_ORDER_ID: ("platform id", "client order id", "clordid", "broker id"),
    }
)

# Evaluated in order against the normalized header; first hit wins.
FIELD_PATTERNS: tuple[tuple[TargetField, str], ...] = (
    (TargetField.EXCHANGE_ORDER_ID, r"\bexchange\b.*\bid\b"),
    (TargetField.PLATFORM_ORDER_ID, r"\b(platform|client|broker)\b.*\bid\b"),
    (TargetField.ID, r"^(trade|order|transaction|ticket|fill) (id|number|no|num)$"),
    (TargetField.EXIT_PRICE, r"\b(exit|close|closing) (price|px)\b"),
    (TargetField.STOP_PRICE, r"\bstop (price|loss)\b"),
    (TargetField.LIMIT_PRICE, r"\b(limit|target) price\b"),
    (TargetField.EXECUTE_PRICE, r"\b(avg|average|fill|filled|execution|exec|entry|trade) (fill )?(price|px)\b"),
    (TargetField.EXECUTE_PRICE, r"^price\b"),
    (TargetField.CANCELLED_AT, r"\bcancel(l?ed)? (at|time|date|timestamp)\b"),
    (TargetField.FILLED_AT, r"\b(fill|filled|execution|executed|exit|exited|close|closed) (at|time|timestamp)\b"),
    (TargetField.CREATED_AT, r"\b(entry|entered|created|creation|order|submitted|placed) (at|time|timestamp|date)\b"),
    (TargetField.TRADE_DAY, r"\b(trade|trading|session) (day|date)\b"),
    (TargetField.FEES, r"\b(fees?|commissions?)\b"),
    (TargetField.PNL, r"\b(pnl|p l|profit)\b"),
    (TargetField.SIZE, r"\b(qty|quantity|contracts|shares|lots?)\b"),
    (TargetField.SIDE, r"\b(side|direction)\b"),
    (TargetField.CONTRACT_NAME, r"\b(symbol|ticker|instrument|contract)\b"),
)

# Last-resort substring rules for glued headers such as "EntryDateTime".
KEYWORD_RULES: tuple[tuple[tuple[tuple[str, ...], ...], TargetField], ...] = (
    ((("entry", "enter"), ("date", "time")), TargetField.CREATED_AT),
    ((("exit",), ("date", "time")), TargetField.FILLED_AT),
    ((("exit", "close"), ("price", "px")), TargetField.EXIT_PRICE),
    ((("entry", "fill", "exec", "avg"), ("price", "px")), TargetField.EXECUTE_PRICE),
    ((("commission", "fee"),), TargetField.FEES),
)

# Date-only / time-only column families that are merged before parsing.
DATE_PAIR_FAMILIES: Mapping[TargetField, frozenset[str]] = MappingProxyType(
    {
        TargetField.CREATED_AT: frozenset(
            {"entry", "entered", "created", "creation", "order", "open", "opened", "submitted", "placed"}
        ),
        TargetField.FILLED_AT: frozenset(
            {"exit", "exited", "fill", "filled", "execution", "executed", "close", "closed"}
        ),
        TargetField.CANCELLED_AT: frozenset({"cancel", "cancelled", "canceled"}),
    }
)


def normalize_header(text: Any) -> str:
    return " ".join(
        token for token in re.split(r"[^a-z0-9]+", str(text).replace("\ufeff", "").lower()) if token
    )


def _match_key(text: Any) -> str:
    return normalize_header(text).replace(" ", "")


def coerce_target_field(value: Any) -> TargetField | None:
    """Accept a TargetField, its value (``ContractName``), label or enum name."""
    if isinstance(value, TargetField):
        return value
    key = _match_key(value)
    if not key:
        return None
    for target in TargetField:
        if key in {_match_key(target.value), _match_key(target.name), _match_key(target.attribute)}:
            return target
    return None


def validate_manual_overrides(
    overrides: Mapping[str, Any] | None, headers: Sequence[str]
) -> dict[int, TargetField | None]:
    """Resolve caller overrides to column indices.

    Values may be a TargetField, a field name, or ``None``/``""`` to ignore the
    column. Every problem is collected before raising ``MappingError``.
    """
    if not overrides:
        return {}
    if not isinstance(overrides, Mapping):
        raise MappingError(["Header overrides must be a mapping of header to field."])

    exact_columns: dict[str, list[int]] = {}
    normalized_columns: dict[str, list[int]] = {}
    for index, header in enumerate(headers):
        exact_columns.setdefault(header, []).append(index)
        normalized_columns.setdefault(normalize_header(header), []).append(index)

    errors: list[str] = []
    resolved: dict[int, TargetField | None] = {}
    for source, target in overrides.items():
        source_text = str(source).strip()
        if not source_text:
            errors.append("Override contains an empty header name.")
            continue
        if isinstance(target, (dict, list, tuple, set)):
            errors.append(f"Header '{source_text}' has a non-scalar target field value.")
            continue

        target_field: TargetField | None = None
        if target is not None and str(target).strip():
            target_field = coerce_target_field(target)
            if target_field is None:
                errors.append(f"Unsupported canonical field '{target}' for header '{source_text}'.")
                continue

        indices = exact_columns.get(source_text)
        if indices is None:
            indices = normalized_columns.get(normalize_header(source_text))
            if indices is not None and len({headers[i] for i in indices}) > 1:
                errors.append(f"Header '{source_text}' is ambiguous in the CSV.")
                continue
        if indices is None:
            errors.append(f"Header '{source_text}' is not present in the CSV.")
            continue
        for index in indices:
            if index in resolved and resolved[index] != target_field:
                errors.append(f"Header '{source_text}' is overridden more than once.")
                break
            resolved[index] = target_field

    if errors:
        raise MappingError(errors)
    return resolved


@dataclass(frozen=True)
class HeaderResolution:
    headers: tuple[str, ...]
    mapping: dict[str, TargetField | None]
    field_columns: dict[TargetField, tuple[int, ...]]
    date_pairs: dict[TargetField, tuple[int, int]] = field(default_factory=dict)
    overrides: dict[int, TargetField | None] = field(default_factory=dict)
    adapter: BrokerAdapter | None = None
    complete_trades: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def broker(self) -> str:
        return self.adapter.name if self.adapter is not None else UNKNOWN_BROKER

    @property
    def resolved_fields(self) -> frozenset[TargetField]:
        return frozenset(self.field_columns) | frozenset(self.date_pairs)

    @property
    def columns_matched(self) -> int:
        return sum(1 for target in self.mapping.values() if target is not None)

    def day_first(self, default: bool) -> bool:
        if self.adapter is not None and self.adapter.day_first is not None:
            return self.adapter.day_first
        return default

    def missing(self, fields: Iterable[TargetField]) -> list[TargetField]:
        resolved = self.resolved_fields
        return [target for target in fields if target not in resolved]

    def _first_value(self, row: Sequence[str], indices: Iterable[int]) -> str:
        for index in indices:
            if index < len(row) and row[index]:
                return row[index]
        return ""

    def extract(self, row: Sequence[str]) -> dict[TargetField, str]:
        """Raw cell text for one data row, keyed by canonical field."""
        if self.adapter is not None:
            record: dict[str, str] = {}
            for index, (header, cell) in enumerate(zip(self.headers, row)):
                if index in self.overrides:
                    continue
                if not record.get(header):
                    record[header] = cell
            cells = {target: value for target, value in self.adapter.map_row(record).items() if value}
            overridden: dict[TargetField, list[int]] = {}
            for index, target in self.overrides.items():
                if target is not None:
                    overridden.setdefault(target, []).append(index)
            for target, indices in overridden.items():
                value = self._first_value(row, sorted(indices))
                if value:
                    cells[target] = value
            return cells

        cells = {}
        for target, indices in self.field_columns.items():
            value = self._first_value(row, indices)
            if value:
                cells[target] = value
        for target, (date_index, time_index) in self.date_pairs.items():
            merged = merge_date_and_time(row[date_index], row[time_index])
            if merged:
                cells[target] = merged
        return cells


class HeaderResolver:
    """Maps raw headers to canonical fields.

    Lookup tables are built once at construction and never mutated, so one
    resolver can be shared between concurrent imports.
    """

    def __init__(
        self,
        adapters: Sequence[BrokerAdapter] = BROKER_ADAPTERS,
        aliases: Mapping[TargetField, Sequence[str]] = FIELD_ALIASES,
        patterns: Sequence[tuple[TargetField, str]] = FIELD_PATTERNS,
    ) -> None:
        exact: dict[str, TargetField] = {}
        for target in TargetField:
            for variant in (target.value, target.label):
                exact.setdefault(normalize_header(variant), target)
        alias_lookup: dict[str, TargetField] = {}
        for target, variants in aliases.items():
            for variant in variants:
                alias_lookup.setdefault(normalize_header(variant), target)

        self._exact = MappingProxyType(exact)
        self._aliases = MappingProxyType(alias_lookup)
        self._patterns = tuple((re.compile(pattern), target) for target, pattern in patterns)
        self._adapters = tuple(adapters)

    @property
    def adapters(self) -> tuple[BrokerAdapter, ...]:
        return self._adapters

    def resolve_header(self, header: str) -> TargetField | None:
        normalized = normalize_header(header)
        if not normalized:
            return None
        direct = self._exact.get(normalized) or self._aliases.get(normalized)
        if direct is not None:
            return direct
        for pattern, target in self._patterns:
            if pattern.search(normalized):
                return target
        for groups, target in KEYWORD_RULES:
            if all(any(keyword in normalized for keyword in group) for group in groups):
                return target
        return None

    def matching_adapters(self, headers: Sequence[str]) -> list[BrokerAdapter]:
        return [adapter for adapter in self._adapters if adapter.matches(headers)]

    def detect_adapter(self, headers: Sequence[str]) -> BrokerAdapter | None:
        matches = self.matching_adapters(headers)
        return matches[0] if len(matches) == 1 else None

    def _date_pairs(
        self, headers: Sequence[str], overrides: Mapping[int, TargetField | None]
    ) -> dict[TargetField, tuple[int, int]]:
        pairs: dict[TargetField, tuple[int, int]] = {}
        for target, family in DATE_PAIR_FAMILIES.items():
            date_index: int | None = None
            time_index: int | None = None
            for index, header in enumerate(headers):
                if index in overrides:
                    continue
                tokens = set(normalize_header(header).split())
                if not tokens & family:
                    continue
                if "date" in tokens and "time" not in tokens and date_index is None:
                    date_index = index
                elif "time" in tokens and "date" not in tokens and time_index is None:
                    time_index = index
            if date_index is not None and time_index is not None:
                pairs[target] = (date_index, time_index)
        return pairs

    def _looks_like_complete_trades(
        self, headers: Sequence[str], field_columns: Mapping[TargetField, Sequence[int]]
    ) -> bool:
        if TargetField.EXIT_PRICE in field_columns:
            return True
        entered = any(
            "entry" in normalize_header(headers[i]) or "enter" in normalize_header(headers[i])
            for i in field_columns.get(TargetField.CREATED_AT, ())
        )
        exited = any(
            "exit" in normalize_header(headers[i]) for i in field_columns.get(TargetField.FILLED_AT, ())
        )
        return entered and exited

    def resolve(
        self, headers: Sequence[str], manual_overrides: Mapping[str, Any] | None = None
    ) -> HeaderResolution:
        headers = tuple(headers)
        overrides = validate_manual_overrides(manual_overrides, headers)
        warnings: list[str] = []

        matches = self.matching_adapters(headers)
        adapter = matches[0] if len(matches) == 1 else None
        if len(matches) > 1:
            names = ", ".join(match.name for match in matches)
            warnings.append(
                f"Headers match several broker formats ({names}); using generic column matching."
            )
            logger.warning("Ambiguous broker detection: %s", names)

        mapping: dict[str, TargetField | None] = {}
        columns: dict[TargetField, list[int]] = {}
        for index, header in enumerate(headers):
            if index in overrides:
                target = overrides[index]
            elif adapter is not None:
                target = adapter.header_field(header)
            else:
                target = self.resolve_header(header)
            if header not in mapping or mapping[header] is None:
                mapping[header] = target
            if target is not None:
                columns.setdefault(target, []).append(index)

        field_columns = {target: tuple(indices) for target, indices in columns.items()}
        date_pairs = {} if adapter is not None else self._date_pairs(headers, overrides)
        if adapter is not None:
            complete_trades = adapter.complete_trades
        else:
            complete_trades = self._looks_like_complete_trades(headers, field_columns)

        logger.debug(
            "Resolved %d of %d headers (broker=%s, complete_trades=%s)",
            sum(1 for target in mapping.values() if target is not None),
            len(headers),
            adapter.name if adapter else UNKNOWN_BROKER,
            complete_trades,
        )
        return HeaderResolution(
            headers=headers,
            mapping=mapping,
            field_columns=field_columns,
            date_pairs=date_pairs,
            overrides=overrides,
            adapter=adapter,
            complete_trades=complete_trades,
            warnings=tuple(warnings),
        )

    def suggest_header_candidates(
        self, headers: Sequence[str], target: TargetField | str, *, limit: int = 3
    ) -> list[str]:
        """Rank raw headers by how likely they are to hold ``target``."""
        target_field = coerce_target_field(target)
        if target_field is None:
            return []

        alias_pool = [target_field.value, target_field.label, *FIELD_ALIASES.get(target_field, ())]
        alias_normalized = {normalize_header(alias) for alias in alias_pool}
        alias_match_keys = {_match_key(alias) for alias in alias_pool if _match_key(alias)}
        alias_tokens = {token for alias in alias_pool for token in normalize_header(alias).split()}

        candidates: list[tuple[int, int, str]] = []
        for idx, header in enumerate(headers):
            normalized = normalize_header(header)
            column_tokens = set(normalized.split())
            score = 0
            if normalized in alias_normalized:
                score += 200
            if _match_key(header) in alias_match_keys:
                score += 180
            if self.resolve_header(header) is target_field:
                score += 150
            shared_tokens = alias_tokens.intersection(column_tokens)
            if shared_tokens:
                score += len(shared_tokens) * 25
            if score > 0:
                candidates.append((score, -idx, header))

        candidates.sort(reverse=True)
        ordered: list[str] = []
        for _, _, header in candidates:
            if header in ordered:
                continue
            ordered.append(header)
            if len(ordered) >= limit:
                break
        return ordered


DEFAULT_RESOLVER = HeaderResolver()


def resolve_header(header: str) -> TargetField | None:
    return DEFAULT_RESOLVER.resolve_header(header)


def suggest_header_candidates(
    headers: Sequence[str], target: TargetField | str, *, limit: int = 3
) -> list[str]:
    return DEFAULT_RESOLVER.suggest_header_candidates(headers, target, limit=limit)
