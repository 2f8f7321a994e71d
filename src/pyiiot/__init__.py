"""pyiiot - Async Python client for an IIoT sensor monitoring backend."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyiiot")
except PackageNotFoundError:
    __version__ = "0+local"
from pyiiot.bootstrap import BootstrapController
from pyiiot.channel import (
    ChannelEvent,
    ChannelMessage,
    DeviceStatusMessage,
    MqttTransport,
    RealtimeChannel,
    SensorDataMessage,
    SocketIOTransport,
    SystemMetricsMessage,
)
from pyiiot.client import IiotClient
from pyiiot.config import IiotConfig
from pyiiot.exceptions import (
    IiotApiError,
    IiotAuthenticationError,
    IiotChannelError,
    IiotConfigError,
    IiotError,
    IiotMalformedPayloadError,
    IiotNetworkError,
    IiotSessionExpiredError,
    IiotSessionStorageError,
    IiotTransportError,
)
from pyiiot.models import (
    AuthResult,
    DeviceState,
    DeviceStatus,
    SensorReading,
    SystemMetrics,
    UserSummary,
)
from pyiiot.session import FileSessionBackend, MemorySessionBackend, Session, SessionStore
from pyiiot.state import IngestionSource, StateChange, StateReconciler, StateSection

__all__ = [
    "__version__",
    "AuthResult",
    "BootstrapController",
    "ChannelEvent",
    "ChannelMessage",
    "DeviceState",
    "DeviceStatus",
    "DeviceStatusMessage",
    "FileSessionBackend",
    "IiotApiError",
    "IiotAuthenticationError",
    "IiotChannelError",
    "IiotClient",
    "IiotConfig",
    "IiotConfigError",
    "IiotError",
    "IiotMalformedPayloadError",
    "IiotNetworkError",
    "IiotSessionExpiredError",
    "IiotSessionStorageError",
    "IiotTransportError",
    "IngestionSource",
    "MemorySessionBackend",
    "MqttTransport",
    "RealtimeChannel",
    "SensorDataMessage",
    "SensorReading",
    "Session",
    "SessionStore",
    "SocketIOTransport",
    "StateChange",
    "StateReconciler",
    "StateSection",
    "SystemMetrics",
    "SystemMetricsMessage",
    "UserSummary",
]
