"""Per-category telemetry record models.

Each model documents the fields producers are known to send.  None of
them is a closed schema: extra fields are preserved, and a known field
that cannot be coerced keeps the value the producer sent, so the typed
attribute is only guaranteed to have its declared type when coercion
succeeded.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar

from pydantic import AliasChoices, Field, field_validator

from pydevicehub.exceptions import MalformedRecordError
from pydevicehub.ingestion.normalize import or_raw, parse_timestamp, safe_float, safe_int, safe_str
from pydevicehub.models._base import Record
from pydevicehub.state.events import Category


class ContactRecord(Record):
    """An address-book entry.

    Parameters
    ----------
    name : str or None
        Display name.
    phone : str or None
        Phone number as sent by the device.
    """

    CATEGORY: ClassVar[Category | None] = Category.CONTACTS

    name: str | Any = Field(default=None, validation_alias=AliasChoices("name", "displayName"))
    phone: str | Any = Field(default=None, validation_alias=AliasChoices("phone", "number", "phoneNumber"))

    @field_validator("name", "phone", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return or_raw(safe_str(value), value)


class SmsRecord(Record):
    """A text message.

    Parameters
    ----------
    address : str or None
        Counterpart number.
    body : str or None
        Message text.
    date : datetime or None
        Device-side message time.
    """

    CATEGORY: ClassVar[Category | None] = Category.SMS

    address: str | Any = Field(default=None, validation_alias=AliasChoices("address", "from", "sender", "number"))
    body: str | Any = Field(default=None, validation_alias=AliasChoices("body", "message", "text"))
    date: datetime | Any = None

    @field_validator("address", "body", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return or_raw(safe_str(value), value)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        return or_raw(parse_timestamp(value), value)


class CallLogRecord(Record):
    """A call-log entry.

    Parameters
    ----------
    number : str or None
        Counterpart number.
    name : str or None
        Cached contact name.
    call_type : str or None
        Direction/outcome as reported by the device (``incoming``,
        ``outgoing``, ``missed``, or a numeric code).
    duration : int or None
        Call duration in seconds.
    date : datetime or None
        Device-side call time.
    """

    CATEGORY: ClassVar[Category | None] = Category.CALLLOG

    number: str | Any = Field(default=None, validation_alias=AliasChoices("number", "phone", "phoneNumber"))
    name: str | Any = None
    call_type: str | Any = Field(default=None, validation_alias=AliasChoices("call_type", "type", "callType"))
    duration: int | Any = None
    date: datetime | Any = None

    @field_validator("number", "name", "call_type", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return or_raw(safe_str(value), value)

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> Any:
        return or_raw(safe_int(value), value)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        return or_raw(parse_timestamp(value), value)


class LocationRecord(Record):
    """A location fix.

    Numeric fields are ``None`` when absent and keep the sent value when
    it is not a number.
    """

    CATEGORY: ClassVar[Category | None] = Category.LOCATION

    latitude: float | Any = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | Any = Field(default=None, validation_alias=AliasChoices("longitude", "lng", "lon"))
    accuracy: float | Any = None
    altitude: float | Any = None
    speed: float | Any = None

    @field_validator("latitude", "longitude", "accuracy", "altitude", "speed", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> Any:
        return or_raw(safe_float(value), value)


class ScreenshotRecord(Record):
    """A screenshot, either inline (``image`` data URL) or uploaded (``url``)."""

    CATEGORY: ClassVar[Category | None] = Category.SCREENSHOT

    image: str | Any = None
    filename: str | Any = None
    url: str | Any = None

    @field_validator("image", "filename", "url", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return or_raw(safe_str(value), value)


class AudioRecord(Record):
    """An audio clip reference."""

    CATEGORY: ClassVar[Category | None] = Category.AUDIO

    filename: str | Any = None
    url: str | Any = None

    @field_validator("filename", "url", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return or_raw(safe_str(value), value)


RECORD_MODELS: dict[Category, type[Record]] = {
    Category.CONTACTS: ContactRecord,
    Category.SMS: SmsRecord,
    Category.CALLLOG: CallLogRecord,
    Category.LOCATION: LocationRecord,
    Category.SCREENSHOT: ScreenshotRecord,
    Category.AUDIO: AudioRecord,
}


def record_model_for(category: Category) -> type[Record]:
    return RECORD_MODELS[category]


def coerce_records(category: Category, payload: Any) -> tuple[Record, ...]:
    """Coerce a single record or a sequence of records for *category*.

    Raises :class:`MalformedRecordError` when any element fails the
    type-shape checks; nothing is returned partially.
    """
    model = record_model_for(category)
    if payload is None:
        return ()
    if isinstance(payload, (Mapping, Record)):
        return (model.from_payload(payload),)
    if isinstance(payload, (str, bytes)) or not hasattr(payload, "__iter__"):
        raise MalformedRecordError(
            f"{category} expects an object or a list of objects, got {type(payload).__name__}",
            category=str(category),
        )
    return tuple(model.from_payload(item) for item in payload)
