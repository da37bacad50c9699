from __future__ import annotations

import math
import re
from typing import Any

BUY = "Buy"
SELL = "Sell"
SIDES = frozenset({BUY, SELL})

ORDER_TYPES = frozenset({"Market", "Limit", "Stop", "StopLimit"})
DEFAULT_ORDER_TYPE = "Market"
DEFAULT_STATUS = "Filled"

OPENING = "Opening"
CLOSING = "Closing"

_SIDE_ALIASES = {
    "buy": BUY,
    "b": BUY,
    "long": BUY,
    "l": BUY,
    "bought": BUY,
    "bid": BUY,
    "sell": SELL,
    "s": SELL,
    "short": SELL,
    "sold": SELL,
    "ask": SELL,
}

_ORDER_TYPE_ALIASES = {
    "market": "Market",
    "m": "Market",
    "mkt": "Market",
    "limit": "Limit",
    "l": "Limit",
    "lmt": "Limit",
    "stop": "Stop",
    "stp": "Stop",
    "stop market": "Stop",
    "stop limit": "StopLimit",
    "stoplimit": "StopLimit",
    "stp lmt": "StopLimit",
}

_DISPOSITION_ALIASES = {
    "opening": OPENING,
    "open": OPENING,
    "opened": OPENING,
    "to open": OPENING,
    "o": OPENING,
    "entry": OPENING,
    "closing": CLOSING,
    "exit": CLOSING,
    "close": CLOSING,
    "closed": CLOSING,
    "to close": CLOSING,
    "c": CLOSING,
}

_CURRENCY_TOKENS = ("US$", "USD", "EUR", "$", "€", "£", "@")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_number(value: Any) -> float | None:
    """Parse a localized number; ``None`` means "no value" and is never coerced to zero."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    text = _WHITESPACE_RE.sub("", str(value))
    for token in _CURRENCY_TOKENS:
        text = text.replace(token, "")
    if not text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]

    if "," in text and "." in text:
        # Whichever separator comes last is the decimal mark.
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") == 1:
        text = text.replace(",", ".")
    elif text.count(",") > 1:
        text = text.replace(",", "")

    try:
        parsed = float(text)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return -abs(parsed) if negative else parsed


def normalize_side(value: Any) -> str | None:
    text = clean_text(value)
    if not text:
        return None
    return _SIDE_ALIASES.get(text.lower(), text)


def normalize_order_type(value: Any) -> str:
    text = clean_text(value)
    if not text:
        return DEFAULT_ORDER_TYPE
    key = " ".join(re.split(r"[^a-z0-9]+", text.lower())).strip()
    return _ORDER_TYPE_ALIASES.get(key, text)


def normalize_status(value: Any) -> str:
    return clean_text(value) or DEFAULT_STATUS


def normalize_disposition(value: Any) -> str | None:
    text = clean_text(value).lower()
    if not text:
        return None
    return _DISPOSITION_ALIASES.get(text)
