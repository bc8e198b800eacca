"""Device-level read models returned by pull queries."""

from __future__ import annotations

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from pydevicehub.models._base import Record


class DeviceSummary(BaseModel):
    """A known device and its merged info."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    info: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"deviceId": self.device_id, "info": dict(self.info)}


class DeviceRecordEntry(NamedTuple):
    """A stored record attributed to its device."""

    device_id: str
    record: Record

    def to_dict(self) -> dict[str, Any]:
        # Same shape for pulled rows and streamed records.
        return {"deviceId": self.device_id, **self.record.to_dict()}
