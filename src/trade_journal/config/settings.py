from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_REFERENCE_TIMEZONE = "Europe/Budapest"
DEFAULT_SAMPLE_LINES = 5


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    reference_timezone: str
    day_first: bool
    delimiter_sample_lines: int
    log_level: str


def get_settings() -> Settings:
    return Settings(
        reference_timezone=(
            os.getenv("TRADE_JOURNAL_REFERENCE_TZ", "").strip() or DEFAULT_REFERENCE_TIMEZONE
        ),
        day_first=_env_bool("TRADE_JOURNAL_DAY_FIRST", True),
        delimiter_sample_lines=_env_int("TRADE_JOURNAL_SAMPLE_LINES", DEFAULT_SAMPLE_LINES),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
