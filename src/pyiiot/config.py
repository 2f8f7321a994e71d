"""Client configuration for pyiiot."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pyiiot._constants import BASE_URL, TELEMETRY_CAPACITY, WS_URL
from pyiiot.exceptions import IiotConfigError

CHANNEL_TRANSPORTS: frozenset[str] = frozenset({"socketio", "mqtt"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class IiotConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        REST API base URL including the version prefix.
    ws_url : str
        Socket.IO server URL used by the realtime channel.
    email : str or None
        Account email used by :meth:`pyiiot.IiotClient.login` when no
        explicit credentials are passed.
    password : str or None
        Account password.
    session_file : Path or None
        JSON file used to persist the session across restarts.
        ``None`` keeps the session in memory only.
    request_timeout : float
        Total timeout in seconds for a single REST call.
    refresh_skew : float
        Seconds before the access token's ``exp`` claim at which
        :meth:`pyiiot.IiotClient.ensure_session` refreshes it.
    telemetry_capacity : int
        Number of sensor readings kept in the newest-first buffer.
    channel_transport : str
        ``"socketio"`` (default) or ``"mqtt"``.
    socketio_path : str
        Engine.IO endpoint path on the server.
    channel_connect_timeout : float
        Seconds to wait for the channel handshake.
    mqtt_host : str
        Broker host for the MQTT transport.
    mqtt_port : int
        Broker port for the MQTT transport.
    mqtt_username : str or None
        Broker username.
    mqtt_password : str or None
        Broker password. When unset the current access token is used.
    mqtt_tls : bool
        Enable TLS towards the broker.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    base_url: str = BASE_URL
    ws_url: str = WS_URL
    email: str | None = None
    password: str | None = None
    session_file: Path | None = None
    request_timeout: float = 10.0
    refresh_skew: float = 30.0
    telemetry_capacity: int = TELEMETRY_CAPACITY
    channel_transport: str = "socketio"
    socketio_path: str = "socket.io"
    channel_connect_timeout: float = 15.0
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        if self.telemetry_capacity < 1:
            raise IiotConfigError(f"telemetry_capacity must be >= 1, got {self.telemetry_capacity}")
        if self.channel_transport not in CHANNEL_TRANSPORTS:
            raise IiotConfigError(
                f"channel_transport must be one of {sorted(CHANNEL_TRANSPORTS)}, got {self.channel_transport!r}"
            )
        if self.request_timeout <= 0:
            raise IiotConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.session_file is not None and not isinstance(self.session_file, Path):
            object.__setattr__(self, "session_file", Path(self.session_file))

    @classmethod
    def from_env(cls, **overrides: Any) -> IiotConfig:
        """Create configuration from environment variables.

        Reads ``IIOT_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        IiotConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "IIOT_API_BASE_URL": "base_url",
            "IIOT_WS_URL": "ws_url",
            "IIOT_EMAIL": "email",
            "IIOT_PASSWORD": "password",
            "IIOT_CHANNEL_TRANSPORT": "channel_transport",
            "IIOT_SOCKETIO_PATH": "socketio_path",
            "IIOT_MQTT_HOST": "mqtt_host",
            "IIOT_MQTT_USERNAME": "mqtt_username",
            "IIOT_MQTT_PASSWORD": "mqtt_password",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        session_file = env.get("IIOT_SESSION_FILE")
        if session_file:
            config_kwargs["session_file"] = Path(session_file).expanduser()

        _ENV_FLOAT_MAP = {
            "IIOT_REQUEST_TIMEOUT": "request_timeout",
            "IIOT_REFRESH_SKEW": "refresh_skew",
            "IIOT_CHANNEL_CONNECT_TIMEOUT": "channel_connect_timeout",
        }
        _ENV_INT_MAP = {
            "IIOT_TELEMETRY_CAPACITY": "telemetry_capacity",
            "IIOT_MQTT_PORT": "mqtt_port",
            "IIOT_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
        except ValueError as exc:
            raise IiotConfigError(f"Invalid numeric environment value: {exc}") from exc

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("IIOT_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
