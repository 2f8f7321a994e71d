"""Data models for IIoT platform payloads."""

from pyiiot.models._base import IiotBaseModel
from pyiiot.models.device import DeviceState, DeviceStatus
from pyiiot.models.metrics import SystemMetrics
from pyiiot.models.sensor import SensorReading
from pyiiot.models.user import AuthResult, UserSummary

__all__ = [
    "AuthResult",
    "DeviceState",
    "DeviceStatus",
    "IiotBaseModel",
    "SensorReading",
    "SystemMetrics",
    "UserSummary",
]
