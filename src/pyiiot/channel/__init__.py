"""Realtime push channel and its wire transports."""

from pyiiot.channel.messages import (
    ChannelEvent,
    ChannelMessage,
    DeviceStatusMessage,
    SensorDataMessage,
    SystemMetricsMessage,
    parse_channel_message,
)
from pyiiot.channel.mqtt_transport import MqttTransport, topic_to_event
from pyiiot.channel.realtime import ChannelTransport, RealtimeChannel
from pyiiot.channel.socketio_transport import SocketIOTransport

__all__ = [
    "ChannelEvent",
    "ChannelMessage",
    "ChannelTransport",
    "DeviceStatusMessage",
    "MqttTransport",
    "RealtimeChannel",
    "SensorDataMessage",
    "SocketIOTransport",
    "SystemMetricsMessage",
    "parse_channel_message",
    "topic_to_event",
]
