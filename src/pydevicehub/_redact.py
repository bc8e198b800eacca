"""Helpers for safe debug logging.

Producer submissions carry personal data such as message bodies, phone
numbers and coordinates, and screenshots arrive as inline data URLs.
:func:`redact_for_log` masks those before a payload reaches a DEBUG log.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

_PERSONAL_KEYS: frozenset[str] = frozenset(
    {
        "body",
        "message",
        "text",
        "address",
        "sender",
        "from",
        "number",
        "phone",
        "phonenumber",
        "name",
        "displayname",
        "latitude",
        "longitude",
        "lat",
        "lng",
        "lon",
    }
)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?[^,]*,")

_MAX_DEPTH = 20


def _redact_text(text: str, max_string: int) -> str:
    match = _DATA_URL.match(text)
    if match is not None:
        return f"<data-url {match['mime'] or 'unknown'} {len(text) - match.end()} chars>"
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a log-safe copy of *value*.

    Records are dumped to their wire form first.  Values stored under
    personal-data keys become ``<redacted>``.  Inline data URLs are
    reduced to their media type and payload size wherever they appear,
    and other long strings are truncated to *max_string* characters.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _redact_text(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    nested = _depth + 1
    if isinstance(value, Mapping):
        return {
            str(key): (
                "<redacted>"
                if str(key).lower() in _PERSONAL_KEYS
                else redact_for_log(item, max_string=max_string, _depth=nested)
            )
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact_for_log(item, max_string=max_string, _depth=nested) for item in value]
    return repr(value)
