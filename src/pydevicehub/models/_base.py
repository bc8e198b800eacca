"""Base model for telemetry records.

Every category record inherits from :class:`Record` which provides:

* an open field set: unknown producer fields are kept in the model's
  extra bag and round-trip through :meth:`Record.to_dict`
* tolerant ``timestamp`` coercion (datetimes, ISO strings, epoch
  seconds or milliseconds); an unparseable value is kept under
  ``raw_timestamp`` and the server stamps the record on append
* a :meth:`Record.from_payload` constructor that turns a producer
  mapping into a frozen, detached record
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator

from pydevicehub.exceptions import MalformedRecordError
from pydevicehub.ingestion.normalize import parse_timestamp
from pydevicehub.state.events import Category

RAW_TIMESTAMP_KEY = "raw_timestamp"


class Record(BaseModel):
    """One unit of telemetry data within a category."""

    CATEGORY: ClassVar[Category | None] = None

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    timestamp: datetime | None = None
    """Server-assigned at append time unless the producer supplied one."""

    @model_validator(mode="before")
    @classmethod
    def _set_aside_unparsed_timestamp(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        raw = data.get("timestamp")
        if raw is None or raw == "" or parse_timestamp(raw) is not None:
            return data
        kept = {key: value for key, value in data.items() if key != "timestamp"}
        kept.setdefault(RAW_TIMESTAMP_KEY, raw)
        return kept

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        """Build a record from a producer mapping (or pass an instance through).

        The payload is deep-copied so later mutations by the caller never
        reach stored data.
        """
        if isinstance(payload, cls):
            return payload
        if isinstance(payload, Record):
            raise MalformedRecordError(
                f"{type(payload).__name__} cannot be stored as {cls.__name__}",
                category=str(cls.CATEGORY or ""),
            )
        if not isinstance(payload, Mapping):
            raise MalformedRecordError(
                f"{cls.__name__} payload must be an object, got {type(payload).__name__}",
                category=str(cls.CATEGORY or ""),
            )
        data = {str(key): copy.deepcopy(value) for key, value in payload.items()}
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise MalformedRecordError(str(exc), category=str(cls.CATEGORY or "")) from exc

    def stamped(self, timestamp: datetime) -> Self:
        """Return a copy carrying *timestamp*."""
        return self.model_copy(update={"timestamp": timestamp})

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict; typed fields that are ``None`` are omitted."""
        dumped = self.model_dump(mode="json")
        for name in type(self).model_fields:
            if dumped.get(name) is None:
                dumped.pop(name, None)
        return dumped
