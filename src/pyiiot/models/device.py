"""Device status model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import AliasChoices, Field, field_validator

from pyiiot.models._base import IiotBaseModel


class DeviceState(StrEnum):
    """Connectivity state reported for a device."""

    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class DeviceStatus(IiotBaseModel):
    """Latest known status of one device, keyed by :attr:`device_id`.

    Updates for the same device replace earlier ones entirely; there is
    no field-level merge.
    """

    device_id: str = Field(validation_alias=AliasChoices("deviceId", "device_id"))
    name: str = Field(default="", validation_alias=AliasChoices("name"))
    status: DeviceState = Field(validation_alias=AliasChoices("status"))
    last_seen: datetime | None = Field(default=None, validation_alias=AliasChoices("lastSeen", "last_seen"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("location"))
    sensor_count: int = Field(default=0, validation_alias=AliasChoices("sensorCount", "sensor_count"))

    @field_validator("device_id", mode="before")
    @classmethod
    def _coerce_device_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value
