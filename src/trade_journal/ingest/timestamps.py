"""Date/time normalization into one reference timezone.

Every successfully parsed value is re-emitted as ``YYYY-MM-DD HH:MM:SS`` wall-clock
time in the reference zone. Source offsets are honoured while parsing but never
preserved in the output.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from trade_journal.ingest.validators import clean_text
from trade_journal.utils.dates import format_canonical, to_reference

TZ_ABBR_OFFSETS = {
    "UTC": "+0000",
    "GMT": "+0000",
    "WET": "+0000",
    "BST": "+0100",
    "CET": "+0100",
    "CEST": "+0200",
    "EET": "+0200",
    "EEST": "+0300",
    "EST": "-0500",
    "EDT": "-0400",
    "CST": "-0600",
    "CDT": "-0500",
    "MST": "-0700",
    "MDT": "-0600",
    "PST": "-0800",
    "PDT": "-0700",
    "JST": "+0900",
}

_TIME_PARTS = (
    "%H:%M:%S.%f",
    "%H:%M:%S",
    "%H:%M",
    "%I:%M:%S %p",
    "%I:%M %p",
)

_YEAR_FIRST_DATES = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d")
_DAY_FIRST_DATES = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")
_MONTH_FIRST_DATES = ("%m/%d/%Y", "%m-%d-%Y", "%m.%d.%Y")

TIME_ONLY_FORMATS = (*_TIME_PARTS, "%H%M%S", "%H%M")


def _build_formats(date_parts: tuple[str, ...]) -> tuple[str, ...]:
    formats: list[str] = []
    for date_part in date_parts:
        for time_part in _TIME_PARTS:
            formats.append(f"{date_part} {time_part}")
            if date_part in _YEAR_FIRST_DATES:
                formats.append(f"{date_part}T{time_part}")
        formats.append(date_part)
    return tuple(formats)


DATETIME_FORMATS = {
    True: _build_formats(_YEAR_FIRST_DATES + _DAY_FIRST_DATES + _MONTH_FIRST_DATES),
    False: _build_formats(_YEAR_FIRST_DATES + _MONTH_FIRST_DATES + _DAY_FIRST_DATES),
}

_OFFSET_SUFFIX_RE = re.compile(r"^(?P<base>.*?)\s*(?P<offset>[Zz]|[+-]\d{2}(?::?\d{2})?)$")
_TIME_TAIL_RE = re.compile(r"\d{1,2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?(?:\s*[AaPp][Mm])?$")
_TZ_ABBR_RE = re.compile(r"^(?P<base>.*\S)\s+\(?(?P<abbr>[A-Za-z]{2,5})\)?$")
_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_ALPHA_RE = re.compile(r"[A-Za-z]")


def _replace_tz_abbreviation(text: str) -> str:
    match = _TZ_ABBR_RE.match(text)
    if not match:
        return text
    offset = TZ_ABBR_OFFSETS.get(match.group("abbr").upper())
    if offset is None:
        return text
    return f"{match.group('base')} {offset}"


def _offset_to_tzinfo(offset: str) -> timezone:
    if offset.upper() == "Z":
        return timezone.utc
    sign = -1 if offset.startswith("-") else 1
    digits = offset[1:].replace(":", "")
    hours = int(digits[:2])
    minutes = int(digits[2:4] or 0)
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def split_offset(text: str) -> tuple[str, timezone | None]:
    """Split a trailing UTC offset (or zone abbreviation) from a date/time string."""
    candidate = _replace_tz_abbreviation(text)
    match = _OFFSET_SUFFIX_RE.match(candidate)
    if not match:
        return text, None
    base = match.group("base").strip()
    # A trailing "-2024" in "01-02-2024" is part of the date, not an offset.
    if not _TIME_TAIL_RE.search(base):
        return text, None
    return base, _offset_to_tzinfo(match.group("offset"))


def _parse_naive(text: str, *, day_first: bool) -> datetime | None:
    if _ISO_PREFIX_RE.match(text):
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    for fmt in DATETIME_FORMATS[day_first]:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_with_pandas(text: str, *, day_first: bool) -> datetime | None:
    parsed = pd.to_datetime(text, errors="coerce", dayfirst=day_first)
    if pd.isna(parsed) or not isinstance(parsed, pd.Timestamp):
        return None
    return parsed.to_pydatetime()


def parse_timestamp(value: Any, zone: ZoneInfo, *, day_first: bool = True) -> datetime | None:
    """Parse ``value`` into an aware datetime expressed in ``zone``.

    Strings carrying an explicit offset or zone abbreviation are read in that
    offset; everything else is wall-clock time in ``zone``. Returns ``None``
    for empty, bare-time or unparseable input.
    """
    text = " ".join(clean_text(value).replace("\ufeff", "").split())
    if not text:
        return None

    base, offset = split_offset(text)
    if offset is not None:
        parsed = _parse_naive(base, day_first=day_first)
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=offset)
            return parsed.astimezone(zone)
        parsed = _parse_with_pandas(_replace_tz_abbreviation(text), day_first=day_first)
        if parsed is not None:
            return to_reference(parsed, zone)
        return None

    parsed = _parse_naive(text, day_first=day_first)
    if parsed is not None:
        return to_reference(parsed, zone)

    if parse_time_of_day(text) is not None:
        return None
    if _ALPHA_RE.search(text):
        parsed = _parse_with_pandas(text, day_first=day_first)
        if parsed is not None:
            return to_reference(parsed, zone)
    return None


def parse_time_of_day(value: Any) -> time | None:
    text = " ".join(clean_text(value).split())
    if not text:
        return None
    for fmt in TIME_ONLY_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def merge_date_and_time(date_value: Any, time_value: Any) -> str | None:
    date_text = clean_text(date_value)
    time_text = clean_text(time_value)
    if date_text and time_text:
        return f"{date_text} {time_text}"
    return date_text or time_text or None


def normalize_timestamp(
    value: Any,
    zone: ZoneInfo,
    *,
    fallback_date: datetime | date | None = None,
    fallback: datetime | date | None = None,
    day_first: bool = True,
    label: str = "timestamp",
) -> tuple[str | None, list[str]]:
    """Normalize one cell to the canonical format.

    ``fallback_date`` supplies the day for a bare time of day; ``fallback`` is used
    when nothing parseable is present at all.
    """
    text = clean_text(value)
    if not text:
        if fallback is not None:
            return format_canonical(to_reference(fallback, zone)), []
        return None, []

    parsed = parse_timestamp(text, zone, day_first=day_first)
    if parsed is not None:
        return format_canonical(parsed), []

    time_of_day = parse_time_of_day(text)
    if time_of_day is not None and fallback_date is not None:
        base = to_reference(fallback_date, zone)
        return format_canonical(datetime.combine(base.date(), time_of_day)), []

    if fallback is not None:
        return (
            format_canonical(to_reference(fallback, zone)),
            [f"Could not parse {label} value '{text}'; used fallback date."],
        )
    return None, [f"Could not parse {label} value '{text}'."]
