"""Reference-timezone and canonical timestamp helpers."""

from __future__ import annotations

from datetime import date, datetime, time
from functools import lru_cache
from zoneinfo import ZoneInfo

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"


@lru_cache(maxsize=16)
def reference_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def to_reference(value: datetime | date, zone: ZoneInfo) -> datetime:
    """Express ``value`` in ``zone``; naive values are read as wall-clock time there."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def format_canonical(value: datetime) -> str:
    return value.strftime(CANONICAL_FORMAT)


def parse_canonical(text: str, zone: ZoneInfo) -> datetime:
    return datetime.strptime(text, CANONICAL_FORMAT).replace(tzinfo=zone)


def day_start(canonical: str) -> str:
    return f"{canonical.split(' ')[0]} 00:00:00"
