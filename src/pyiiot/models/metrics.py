"""System metrics model."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from pyiiot.models._base import IiotBaseModel


class SystemMetrics(IiotBaseModel):
    """Platform-wide counters.

    Treated as an atomic snapshot: every update replaces the previous
    value as a whole. The default instance (all zeros) is what a client
    shows before the first snapshot arrives.
    """

    total_devices: int = Field(default=0, validation_alias=AliasChoices("totalDevices", "total_devices"))
    online_devices: int = Field(default=0, validation_alias=AliasChoices("onlineDevices", "online_devices"))
    total_sensors: int = Field(default=0, validation_alias=AliasChoices("totalSensors", "total_sensors"))
    active_sensors: int = Field(default=0, validation_alias=AliasChoices("activeSensors", "active_sensors"))
    alerts_count: int = Field(default=0, validation_alias=AliasChoices("alertsCount", "alerts_count"))
    data_points_today: int = Field(
        default=0,
        validation_alias=AliasChoices("dataPointsToday", "data_points_today"),
    )
