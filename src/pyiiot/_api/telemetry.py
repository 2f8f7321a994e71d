"""Snapshot endpoints: system metrics, recent sensor readings, device statuses."""

from __future__ import annotations

import logging

from pyiiot._api._envelope import unwrap, validate_list, validate_model
from pyiiot._constants import DEVICE_STATUS_PATH, RECENT_SENSORS_PATH, SYSTEM_METRICS_PATH, TELEMETRY_CAPACITY
from pyiiot._transport import Transport
from pyiiot.models.device import DeviceStatus
from pyiiot.models.metrics import SystemMetrics
from pyiiot.models.sensor import SensorReading

_logger = logging.getLogger(__name__)


async def fetch_system_metrics(transport: Transport) -> SystemMetrics:
    """``GET /system/metrics``."""
    body = await transport.request("GET", SYSTEM_METRICS_PATH)
    return validate_model(SystemMetrics, unwrap(body), endpoint=SYSTEM_METRICS_PATH)


async def fetch_recent_sensors(transport: Transport, limit: int = TELEMETRY_CAPACITY) -> list[SensorReading]:
    """``GET /sensors/recent?limit=N``, newest first as served."""
    body = await transport.request("GET", RECENT_SENSORS_PATH, params={"limit": str(limit)})
    readings = validate_list(SensorReading, unwrap(body), endpoint=RECENT_SENSORS_PATH)
    _logger.debug("Fetched %d recent sensor readings", len(readings))
    return readings


async def fetch_device_statuses(transport: Transport) -> list[DeviceStatus]:
    """``GET /devices/status``."""
    body = await transport.request("GET", DEVICE_STATUS_PATH)
    devices = validate_list(DeviceStatus, unwrap(body), endpoint=DEVICE_STATUS_PATH)
    _logger.debug("Fetched %d device statuses", len(devices))
    return devices
