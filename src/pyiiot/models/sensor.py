"""Sensor reading model."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, Field, field_validator

from pyiiot.models._base import IiotBaseModel


class SensorReading(IiotBaseModel):
    """A single sensor sample.

    Arrives either inside the ``/sensors/recent`` list or as one
    ``sensor-data`` stream event. Immutable once created.
    """

    id: str = Field(default="", validation_alias=AliasChoices("_id", "id"))
    """Server-side identifier (absent on some stream events)."""
    device_id: str = Field(validation_alias=AliasChoices("deviceId", "device_id"))
    """Device that produced the reading."""
    sensor_type: str = Field(validation_alias=AliasChoices("sensorType", "sensor_type"))
    """Sensor kind, e.g. ``"temperature"``."""
    value: float = Field(validation_alias=AliasChoices("value"))
    """Measured value."""
    unit: str = Field(default="", validation_alias=AliasChoices("unit"))
    """Unit of :attr:`value`, e.g. ``"°C"``."""
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp"))
    """Sample time (ISO string or epoch seconds/milliseconds on the wire)."""
    location: str | None = Field(default=None, validation_alias=AliasChoices("location"))
    """Optional installation location."""

    @field_validator("id", "device_id", mode="before")
    @classmethod
    def _coerce_str(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value
