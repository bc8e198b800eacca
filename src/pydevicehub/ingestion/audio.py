"""Audio upload records.

The HTTP layer stores uploaded clips under ``<upload_dir>/<deviceId>/``;
these helpers name the file and build the record handed to the store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import quote

from pydevicehub.models.records import AudioRecord


def audio_filename(now: datetime | None = None) -> str:
    """``audio-<ISO timestamp>.mp3`` with ``:`` replaced so it is path-safe."""
    now = (now or datetime.now(UTC)).astimezone(UTC)
    stamp = f"{now:%Y-%m-%dT%H-%M-%S}.{now.microsecond // 1000:03d}Z"
    return f"audio-{stamp}.mp3"


def is_safe_path_component(value: str) -> bool:
    """Whether *value* can be used as a single directory name."""
    return bool(value) and value not in {".", ".."} and "/" not in value and "\\" not in value and "\x00" not in value


def build_audio_record(
    device_id: str,
    filename: str,
    *,
    url_prefix: str = "/uploads",
    timestamp: datetime | None = None,
) -> AudioRecord:
    """Record for a stored clip: ``{filename, url, timestamp}``."""
    url = f"{url_prefix.rstrip('/')}/{quote(device_id, safe='')}/{quote(filename, safe='')}"
    return AudioRecord(filename=filename, url=url, timestamp=timestamp or datetime.now(UTC))
