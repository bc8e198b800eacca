"""Producer submission ingestion.

Translates a raw producer submission (one JSON object that may carry
several categories at once) into independent store calls.  Each category
is submitted on its own, so a malformed category never prevents its
siblings from being stored.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydevicehub._redact import redact_for_log
from pydevicehub.exceptions import MalformedRecordError, ValidationError
from pydevicehub.ingestion.normalize import CATEGORY_ALIASES
from pydevicehub.state.events import Category
from pydevicehub.state.store import EventStore

_logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "deviceId"
DEVICE_SUMMARY_KEY = "device"


@dataclass(frozen=True)
class IngestReport:
    """Outcome of one submission, per category."""

    device_id: str
    accepted: dict[Category, int] = field(default_factory=dict)
    failed: dict[Category, str] = field(default_factory=dict)
    info_updated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "accepted": {category.value: count for category, count in self.accepted.items()},
            "failed": {category.value: reason for category, reason in self.failed.items()},
            "infoUpdated": self.info_updated,
        }


def _require_mapping(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError("submission must be a JSON object", field="body")
    return payload


def ingest_submission(store: EventStore, payload: Any) -> IngestReport:
    """Store every recognized category of a producer submission.

    The device id is ``deviceId``, falling back to the ``device`` summary
    string.  A ``device`` summary is merged into the device info as
    ``summary``.  Category aliases resolve to one canonical category; the
    first alias present wins.  Unknown keys are ignored.

    Raises
    ------
    ValidationError
        Neither ``deviceId`` nor ``device`` identifies the device.
    """
    body = _require_mapping(payload)
    device_id = store.register(body.get(DEVICE_ID_KEY) or body.get(DEVICE_SUMMARY_KEY))

    info_updated = False
    summary = body.get(DEVICE_SUMMARY_KEY)
    if summary:
        store.merge_info(device_id, {"summary": summary})
        info_updated = True

    accepted: dict[Category, int] = {}
    failed: dict[Category, str] = {}
    handled: set[Category] = set()
    for alias, category in CATEGORY_ALIASES.items():
        if category in handled or body.get(alias) is None:
            continue
        handled.add(category)
        try:
            event = store.submit(device_id, category, body[alias])
        except MalformedRecordError as exc:
            failed[category] = str(exc)
            _logger.warning("Rejected %s from %s: %s", category, device_id, exc)
            continue
        accepted[category] = len(event.records) if event is not None else 0

    if _logger.isEnabledFor(logging.DEBUG):
        ignored = [key for key in body if key not in CATEGORY_ALIASES and key not in (DEVICE_ID_KEY, DEVICE_SUMMARY_KEY)]
        _logger.debug(
            "Submission from %s accepted=%s failed=%s ignored=%s payload=%s",
            device_id,
            accepted,
            sorted(failed),
            ignored,
            redact_for_log(body),
        )
    return IngestReport(device_id=device_id, accepted=accepted, failed=failed, info_updated=info_updated)


def merge_device_info(store: EventStore, payload: Any) -> dict[str, Any]:
    """Merge every field but ``deviceId`` into the device info.

    Returns the full merged info.
    """
    body = _require_mapping(payload)
    fields = {key: value for key, value in body.items() if key != DEVICE_ID_KEY}
    event = store.merge_info(body.get(DEVICE_ID_KEY), fields)
    return dict(event.info or {})
