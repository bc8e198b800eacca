"""Data models for telemetry records and device read views."""

from pydevicehub.models._base import Record
from pydevicehub.models.device import DeviceRecordEntry, DeviceSummary
from pydevicehub.models.records import (
    RECORD_MODELS,
    AudioRecord,
    CallLogRecord,
    ContactRecord,
    LocationRecord,
    ScreenshotRecord,
    SmsRecord,
    coerce_records,
    record_model_for,
)

__all__ = [
    "RECORD_MODELS",
    "AudioRecord",
    "CallLogRecord",
    "ContactRecord",
    "DeviceRecordEntry",
    "DeviceSummary",
    "LocationRecord",
    "Record",
    "ScreenshotRecord",
    "SmsRecord",
    "coerce_records",
    "record_model_for",
]
