"""MQTT wire for the realtime channel.

The backend relays device telemetry over MQTT before re-emitting it on
Socket.IO. Subscribing to the broker directly yields the same three
event kinds; topics are mapped onto channel event names here so the
channel layer stays transport-agnostic.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from datetime import UTC, datetime
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyiiot._constants import MQTT_TOPICS
from pyiiot.channel.messages import ChannelEvent
from pyiiot.channel.realtime import DisconnectCallback, MessageCallback
from pyiiot.config import IiotConfig
from pyiiot.exceptions import IiotChannelError

_logger = logging.getLogger(__name__)


def topic_to_event(topic: str, payload: Any) -> tuple[str, Any] | None:
    """Map an ``iiot/...`` topic and decoded payload to ``(event, payload)``.

    Device topics carry the device id in the topic rather than in the
    body, so it is filled in when the body omits it. Sensor bodies without
    a timestamp are stamped with the receive time. Returns ``None`` for
    topics that do not correspond to a channel event.
    """
    parts = topic.split("/")
    if len(parts) != 3 or parts[0] != "iiot":
        return None
    _, scope, kind = parts

    if scope == "system":
        if kind == "metrics":
            return ChannelEvent.SYSTEM_METRICS.value, payload
        return None

    if not isinstance(payload, dict):
        # Let the channel reject it as malformed.
        if kind == "data":
            return ChannelEvent.SENSOR_DATA.value, payload
        if kind == "status":
            return ChannelEvent.DEVICE_STATUS.value, payload
        return None

    body = dict(payload)
    if "deviceId" not in body and "device_id" not in body:
        body["deviceId"] = scope
    if kind == "data":
        body.setdefault("timestamp", datetime.now(UTC).isoformat())
        return ChannelEvent.SENSOR_DATA.value, body
    if kind == "status":
        return ChannelEvent.DEVICE_STATUS.value, body
    return None


class MqttTransport:
    """Threaded paho-mqtt client implementing ``ChannelTransport``.

    paho runs its network loop on its own thread; every callback into the
    channel is marshalled back onto the event loop with
    ``call_soon_threadsafe`` so ordering matches receipt order.
    """

    def __init__(self, config: IiotConfig) -> None:
        self._config = config
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_message: MessageCallback | None = None
        self._on_disconnect: DisconnectCallback | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.is_connected()

    async def open(
        self,
        *,
        token: str | None,
        on_message: MessageCallback,
        on_disconnect: DisconnectCallback,
    ) -> None:
        """Connect to the broker and subscribe to the telemetry topics.

        Raises
        ------
        IiotChannelError
            If the broker is unreachable, rejects the connection, or does
            not acknowledge within ``channel_connect_timeout``.
        """
        await self.close()
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._on_message = on_message
        self._on_disconnect = on_disconnect
        connected: asyncio.Future[Any] = loop.create_future()

        client = mqtt.Client(callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2)
        client.enable_logger(_logger.getChild("paho"))
        password = self._config.mqtt_password or token
        if self._config.mqtt_username or password:
            client.username_pw_set(self._config.mqtt_username or "", password)
        if self._config.mqtt_tls:
            client.tls_set(cert_reqs=ssl.CERT_REQUIRED)

        def resolve(result: Any) -> None:
            if not connected.done():
                connected.set_result(result)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                _logger.warning("MQTT connect failed: %s", reason_code)
                loop.call_soon_threadsafe(resolve, reason_code)
                return
            _logger.debug("MQTT connected reason=%s", reason_code)
            for topic in MQTT_TOPICS:
                c.subscribe(topic, qos=0)
            loop.call_soon_threadsafe(resolve, None)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                payload = json.loads(msg.payload.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                _logger.debug("MQTT payload on %s is not JSON", msg.topic, exc_info=True)
                return
            mapped = topic_to_event(msg.topic, payload)
            if mapped is None:
                _logger.debug("Ignoring MQTT topic %s", msg.topic)
                return
            loop.call_soon_threadsafe(self._deliver, client, *mapped)

        def on_disconnect(
            c: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            _logger.debug("MQTT disconnected: %s", reason_code)
            # Stop paho's automatic reconnect; the channel owns that decision.
            c.disconnect()
            loop.call_soon_threadsafe(self._dropped, client)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        _logger.debug("MQTT connecting host=%s port=%s", self._config.mqtt_host, self._config.mqtt_port)
        try:
            await asyncio.to_thread(
                client.connect,
                self._config.mqtt_host,
                self._config.mqtt_port,
                keepalive=self._config.mqtt_keepalive,
            )
        except OSError as exc:
            raise IiotChannelError(
                f"MQTT broker {self._config.mqtt_host}:{self._config.mqtt_port} unreachable: {exc}"
            ) from exc
        client.loop_start()
        self._client = client

        try:
            failure = await asyncio.wait_for(connected, timeout=self._config.channel_connect_timeout)
        except TimeoutError as exc:
            await self.close()
            raise IiotChannelError("MQTT broker did not acknowledge the connection") from exc
        if failure is not None:
            await self.close()
            raise IiotChannelError(f"MQTT broker rejected the connection: {failure}")

    async def close(self) -> None:
        client = self._client
        self._client = None
        self._on_message = None
        self._on_disconnect = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            await asyncio.to_thread(client.loop_stop)
            _logger.debug("MQTT network loop stopped")

    async def join_device(self, device_id: str) -> None:
        # Wildcard subscriptions already cover every device.
        _logger.debug("MQTT join_device(%s) is implicit", device_id)

    async def leave_device(self, device_id: str) -> None:
        _logger.debug("MQTT leave_device(%s) is implicit", device_id)

    def _deliver(self, client: mqtt.Client, event_name: str, payload: Any) -> None:
        if client is not self._client or self._on_message is None:
            return
        self._on_message(event_name, payload)

    def _dropped(self, client: mqtt.Client) -> None:
        if client is not self._client:
            return
        callback = self._on_disconnect
        self._on_message = None
        self._on_disconnect = None
        if callback is not None:
            callback()
