from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from pyiiot.channel.messages import ChannelEvent, ChannelMessage, DeviceStatusMessage, SensorDataMessage
from pyiiot.channel.realtime import DisconnectCallback, MessageCallback, RealtimeChannel
from pyiiot.exceptions import IiotChannelError
from pyiiot.models.device import DeviceState, DeviceStatus
from pyiiot.models.sensor import SensorReading
from pyiiot.session import MemorySessionBackend, SessionStore


@dataclass
class FakeChannelTransport:
    open_calls: int = 0
    close_calls: int = 0
    tokens: list[str | None] = field(default_factory=list)
    joined: list[str] = field(default_factory=list)
    left: list[str] = field(default_factory=list)
    fail_open: bool = False
    on_message: MessageCallback | None = None
    on_disconnect: DisconnectCallback | None = None

    async def open(
        self,
        *,
        token: str | None,
        on_message: MessageCallback,
        on_disconnect: DisconnectCallback,
    ) -> None:
        self.open_calls += 1
        self.tokens.append(token)
        await asyncio.sleep(0)
        if self.fail_open:
            raise IiotChannelError("connection refused")
        self.on_message = on_message
        self.on_disconnect = on_disconnect

    async def close(self) -> None:
        self.close_calls += 1

    async def join_device(self, device_id: str) -> None:
        self.joined.append(device_id)

    async def leave_device(self, device_id: str) -> None:
        self.left.append(device_id)

    def push(self, event: str, payload: Any) -> None:
        assert self.on_message is not None
        self.on_message(event, payload)


def _sensor_payload(value: float, device_id: str = "dev-1") -> dict[str, Any]:
    return {
        "deviceId": device_id,
        "sensorType": "temperature",
        "value": value,
        "unit": "C",
        "timestamp": "2026-01-01T00:00:00Z",
    }


def _channel(token: str | None = "tok") -> tuple[RealtimeChannel, FakeChannelTransport]:
    transport = FakeChannelTransport()
    backend = MemorySessionBackend({"iiot_token": token} if token else None)
    return RealtimeChannel(transport, SessionStore(backend)), transport


@pytest.mark.asyncio
async def test_connect_is_idempotent() -> None:
    channel, transport = _channel()

    await asyncio.gather(channel.connect(), channel.connect())
    await channel.connect()

    assert channel.connected
    assert transport.open_calls == 1
    assert transport.tokens == ["tok"]


@pytest.mark.asyncio
async def test_connect_without_token_passes_none() -> None:
    channel, transport = _channel(token=None)
    await channel.connect()

    assert transport.tokens == [None]


@pytest.mark.asyncio
async def test_disconnect_without_connect_is_safe() -> None:
    channel, transport = _channel()

    await channel.disconnect()

    assert not channel.connected
    assert transport.close_calls == 1


@pytest.mark.asyncio
async def test_failed_open_raises_and_stays_disconnected() -> None:
    channel, transport = _channel()
    transport.fail_open = True

    with pytest.raises(IiotChannelError):
        await channel.connect()
    assert not channel.connected

    transport.fail_open = False
    await channel.connect()
    assert channel.connected


@pytest.mark.asyncio
async def test_handlers_run_in_receipt_and_registration_order() -> None:
    channel, transport = _channel()
    calls: list[tuple[str, float]] = []
    channel.on(ChannelEvent.SENSOR_DATA, lambda r: calls.append(("first", r.value)))
    channel.on("sensor-data", lambda r: calls.append(("second", r.value)))
    await channel.connect()

    transport.push("sensor-data", _sensor_payload(1.0))
    transport.push("sensor-data", _sensor_payload(2.0))

    assert calls == [("first", 1.0), ("second", 1.0), ("first", 2.0), ("second", 2.0)]


@pytest.mark.asyncio
async def test_handlers_receive_validated_models() -> None:
    channel, transport = _channel()
    readings: list[SensorReading] = []
    statuses: list[DeviceStatus] = []
    channel.on(ChannelEvent.SENSOR_DATA, readings.append)
    channel.on(ChannelEvent.DEVICE_STATUS, statuses.append)
    await channel.connect()

    transport.push("sensor-data", _sensor_payload(21.5))
    transport.push("device-status", {"deviceId": "dev-1", "status": "OFFLINE"})

    assert readings[0].sensor_type == "temperature"
    assert readings[0].value == 21.5
    assert statuses[0].status is DeviceState.OFFLINE


@pytest.mark.asyncio
async def test_malformed_payload_dropped_and_stream_continues() -> None:
    channel, transport = _channel()
    readings: list[SensorReading] = []
    channel.on(ChannelEvent.SENSOR_DATA, readings.append)
    await channel.connect()

    transport.push("sensor-data", {"deviceId": "dev-1"})
    transport.push("sensor-data", "not an object")
    transport.push("sensor-data", _sensor_payload(3.0))

    assert [r.value for r in readings] == [3.0]


@pytest.mark.asyncio
async def test_unknown_event_is_ignored() -> None:
    channel, transport = _channel()
    seen: list[ChannelMessage] = []
    channel.subscribe(seen.append)
    await channel.connect()

    transport.push("firmware-update", {"version": "2"})

    assert seen == []


def test_registering_unknown_event_name_raises() -> None:
    channel, _ = _channel()

    with pytest.raises(ValueError):
        channel.on("firmware-update", lambda _payload: None)


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_dispatch() -> None:
    channel, transport = _channel()
    later: list[SensorReading] = []

    def _boom(_reading: SensorReading) -> None:
        raise RuntimeError("handler failed")

    channel.on(ChannelEvent.SENSOR_DATA, _boom)
    channel.on(ChannelEvent.SENSOR_DATA, later.append)
    await channel.connect()

    transport.push("sensor-data", _sensor_payload(1.0))
    transport.push("sensor-data", _sensor_payload(2.0))

    assert [r.value for r in later] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_remover_stops_delivery() -> None:
    channel, transport = _channel()
    readings: list[SensorReading] = []
    remove = channel.on(ChannelEvent.SENSOR_DATA, readings.append)
    await channel.connect()

    transport.push("sensor-data", _sensor_payload(1.0))
    remove()
    remove()
    transport.push("sensor-data", _sensor_payload(2.0))

    assert len(readings) == 1


@pytest.mark.asyncio
async def test_subscribe_receives_typed_variants() -> None:
    channel, transport = _channel()
    kinds: list[str] = []

    def _route(message: ChannelMessage) -> None:
        match message:
            case SensorDataMessage(payload=reading):
                kinds.append(f"sensor:{reading.device_id}")
            case DeviceStatusMessage(payload=device):
                kinds.append(f"device:{device.status.value}")
            case _:
                kinds.append(str(message.event))

    channel.subscribe(_route)
    await channel.connect()

    transport.push("sensor-data", _sensor_payload(1.0, device_id="dev-7"))
    transport.push("device-status", {"deviceId": "dev-7", "status": "error"})
    transport.push("system-metrics", {"totalDevices": 3})

    assert kinds == ["sensor:dev-7", "device:error", "system-metrics"]


@pytest.mark.asyncio
async def test_messages_after_disconnect_are_ignored() -> None:
    channel, transport = _channel()
    readings: list[SensorReading] = []
    channel.on(ChannelEvent.SENSOR_DATA, readings.append)
    await channel.connect()
    stale = transport.on_message
    assert stale is not None

    await channel.disconnect()
    stale("sensor-data", _sensor_payload(1.0))

    assert readings == []


@pytest.mark.asyncio
async def test_transport_drop_flips_connected_and_allows_reconnect() -> None:
    channel, transport = _channel()
    states: list[bool] = []
    channel.add_connection_listener(states.append)
    await channel.connect()

    assert transport.on_disconnect is not None
    transport.on_disconnect()
    assert not channel.connected

    await channel.connect()
    assert channel.connected
    assert transport.open_calls == 2
    assert states == [True, False, True]


@pytest.mark.asyncio
async def test_room_membership_forwarded_to_transport() -> None:
    channel, transport = _channel()
    await channel.connect()

    await channel.join_device("dev-1")
    await channel.leave_device("dev-1")

    assert transport.joined == ["dev-1"]
    assert transport.left == ["dev-1"]
