"""Typed stream messages.

The server pushes named messages; each known name maps to exactly one
variant below so consumers can ``match`` on them exhaustively instead of
dispatching on strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import ValidationError

from pyiiot.exceptions import IiotMalformedPayloadError
from pyiiot.models.device import DeviceStatus
from pyiiot.models.metrics import SystemMetrics
from pyiiot.models.sensor import SensorReading


class ChannelEvent(StrEnum):
    """Stream event names understood by the channel."""

    SENSOR_DATA = "sensor-data"
    DEVICE_STATUS = "device-status"
    SYSTEM_METRICS = "system-metrics"


@dataclass(frozen=True, slots=True)
class SensorDataMessage:
    event: ClassVar[ChannelEvent] = ChannelEvent.SENSOR_DATA
    payload: SensorReading


@dataclass(frozen=True, slots=True)
class DeviceStatusMessage:
    event: ClassVar[ChannelEvent] = ChannelEvent.DEVICE_STATUS
    payload: DeviceStatus


@dataclass(frozen=True, slots=True)
class SystemMetricsMessage:
    event: ClassVar[ChannelEvent] = ChannelEvent.SYSTEM_METRICS
    payload: SystemMetrics


ChannelMessage = SensorDataMessage | DeviceStatusMessage | SystemMetricsMessage


def parse_channel_message(event_name: str, payload: Any) -> ChannelMessage | None:
    """Validate one received message.

    Returns ``None`` for event names the channel does not know.

    Raises
    ------
    IiotMalformedPayloadError
        If the payload is not an object or misses required fields.
    """
    try:
        event = ChannelEvent(event_name)
    except ValueError:
        return None

    if not isinstance(payload, dict):
        raise IiotMalformedPayloadError(
            f"{event} payload is {type(payload).__name__}, expected an object",
            event=event,
        )

    try:
        match event:
            case ChannelEvent.SENSOR_DATA:
                return SensorDataMessage(SensorReading.model_validate(payload))
            case ChannelEvent.DEVICE_STATUS:
                return DeviceStatusMessage(DeviceStatus.model_validate(payload))
            case ChannelEvent.SYSTEM_METRICS:
                return SystemMetricsMessage(SystemMetrics.model_validate(payload))
    except ValidationError as exc:
        raise IiotMalformedPayloadError(f"{event} payload invalid: {exc}", event=event) from exc
    return None
