"""Normalization helpers.

Centralizes defensive parsing of producer values and category aliases.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydevicehub.state.events import Category

# Producers use several field names for the same category.
CATEGORY_ALIASES: dict[str, Category] = {
    "contacts": Category.CONTACTS,
    "sms": Category.SMS,
    "calllog": Category.CALLLOG,
    "calls": Category.CALLLOG,
    "calllogs": Category.CALLLOG,
    "location": Category.LOCATION,
    "locations": Category.LOCATION,
    "screenshot": Category.SCREENSHOT,
    "screenshots": Category.SCREENSHOT,
    "audio": Category.AUDIO,
}

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1e11


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value)
    return text if text else None


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a producer timestamp to an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings and epoch seconds or milliseconds
    (as numbers or numeric strings).  Returns ``None`` for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    epoch = safe_float(value)
    if epoch is not None:
        if epoch <= 0:
            return None
        if epoch > _MS_THRESHOLD:
            epoch /= 1000.0
        try:
            return datetime.fromtimestamp(epoch, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parse_timestamp(parsed)
    return None


def canonical_category(key: str) -> Category | None:
    """Map a submission field name to its canonical category, if any."""
    return CATEGORY_ALIASES.get(key.strip().lower())


def or_raw(parsed: Any, raw: Any) -> Any:
    """*parsed* when coercion succeeded, otherwise the producer's *raw* value.

    Empty inputs (``None`` or ``""``) still collapse to ``None``.
    """
    if parsed is not None or raw is None or raw == "":
        return parsed
    return raw
