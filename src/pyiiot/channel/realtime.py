"""Realtime channel: one persistent push connection with typed subscriptions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from functools import partial
from typing import Any, Literal, Protocol, overload

from pyiiot._redact import mask_token, redact_for_log
from pyiiot.channel.messages import ChannelEvent, ChannelMessage, parse_channel_message
from pyiiot.exceptions import IiotMalformedPayloadError
from pyiiot.models.device import DeviceStatus
from pyiiot.models.metrics import SystemMetrics
from pyiiot.models.sensor import SensorReading
from pyiiot.session import SessionStore

_logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, Any], None]
DisconnectCallback = Callable[[], None]
Remover = Callable[[], None]


class ChannelTransport(Protocol):
    """Structural interface for the wire underneath :class:`RealtimeChannel`.

    ``on_message(event_name, payload)`` and ``on_disconnect()`` must be
    invoked on the event loop thread, in receipt order.
    """

    async def open(
        self,
        *,
        token: str | None,
        on_message: MessageCallback,
        on_disconnect: DisconnectCallback,
    ) -> None: ...

    async def close(self) -> None: ...

    async def join_device(self, device_id: str) -> None: ...

    async def leave_device(self, device_id: str) -> None: ...


class RealtimeChannel:
    """Single push connection shared by every consumer of stream events.

    Usage::

        channel = RealtimeChannel(SocketIOTransport(config), session_store)
        channel.on(ChannelEvent.SENSOR_DATA, reconciler.apply_sensor_event)
        await channel.connect()

    Dropped connections are not retried here; call :meth:`connect` again.
    """

    def __init__(self, transport: ChannelTransport, session_store: SessionStore) -> None:
        self._transport = transport
        self._session_store = session_store
        self._handlers: dict[ChannelEvent, list[Callable[[Any], None]]] = {event: [] for event in ChannelEvent}
        self._subscribers: list[Callable[[ChannelMessage], None]] = []
        self._connection_listeners: list[Callable[[bool], None]] = []
        self._connected = False
        # Bumped on every open/close so late callbacks from an older
        # connection are ignored.
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport. No-op while already connected.

        Raises
        ------
        IiotChannelError
            If the transport could not be opened.
        """
        async with self._lock:
            if self._connected:
                return
            token = self._session_store.get().access_token
            self._generation += 1
            generation = self._generation
            _logger.debug("Channel connecting token=%s", mask_token(token))
            await self._transport.open(
                token=token,
                on_message=partial(self._on_transport_message, generation),
                on_disconnect=partial(self._on_transport_disconnect, generation),
            )
            self._set_connected(True)
            _logger.info("Realtime channel connected")

    async def disconnect(self) -> None:
        """Close the transport. Safe to call when never connected."""
        async with self._lock:
            self._generation += 1
            was_connected = self._connected
            self._set_connected(False)
            await self._transport.close()
            if was_connected:
                _logger.info("Realtime channel disconnected")

    async def join_device(self, device_id: str) -> None:
        """Ask the server to include this client in a device's room."""
        await self._transport.join_device(device_id)

    async def leave_device(self, device_id: str) -> None:
        await self._transport.leave_device(device_id)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    @overload
    def on(
        self,
        event: Literal[ChannelEvent.SENSOR_DATA],
        handler: Callable[[SensorReading], None],
    ) -> Remover: ...

    @overload
    def on(
        self,
        event: Literal[ChannelEvent.DEVICE_STATUS],
        handler: Callable[[DeviceStatus], None],
    ) -> Remover: ...

    @overload
    def on(
        self,
        event: Literal[ChannelEvent.SYSTEM_METRICS],
        handler: Callable[[SystemMetrics], None],
    ) -> Remover: ...

    @overload
    def on(self, event: str, handler: Callable[[Any], None]) -> Remover: ...

    def on(self, event: ChannelEvent | str, handler: Callable[[Any], None]) -> Remover:
        """Call *handler* with the validated payload of every *event* message.

        Handlers for one event run in registration order. Unknown names
        raise :class:`ValueError` here rather than silently never firing.
        """
        key = ChannelEvent(event)
        self._handlers[key].append(handler)
        return partial(self.off, key, handler)

    def off(self, event: ChannelEvent | str, handler: Callable[[Any], None]) -> None:
        handlers = self._handlers[ChannelEvent(event)]
        if handler in handlers:
            handlers.remove(handler)

    def subscribe(self, handler: Callable[[ChannelMessage], None]) -> Remover:
        """Receive every message as a typed variant."""
        self._subscribers.append(handler)

        def _remove() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return _remove

    def add_connection_listener(self, listener: Callable[[bool], None]) -> Remover:
        """Call *listener* with the new value whenever :attr:`connected` flips."""
        self._connection_listeners.append(listener)

        def _remove() -> None:
            if listener in self._connection_listeners:
                self._connection_listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _set_connected(self, value: bool) -> None:
        if self._connected == value:
            return
        self._connected = value
        for listener in list(self._connection_listeners):
            try:
                listener(value)
            except Exception:
                _logger.debug("Connection listener failed", exc_info=True)

    def _on_transport_disconnect(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self._connected:
            _logger.info("Realtime channel dropped by transport")
        self._set_connected(False)

    def _on_transport_message(self, generation: int, event_name: str, payload: Any) -> None:
        if generation != self._generation:
            return
        self.dispatch(event_name, payload)

    def dispatch(self, event_name: str, payload: Any) -> None:
        """Validate one received message and fan it out to handlers."""
        try:
            message = parse_channel_message(event_name, payload)
        except IiotMalformedPayloadError:
            _logger.debug(
                "Dropping malformed %s payload=%s",
                event_name,
                redact_for_log(payload),
                exc_info=True,
            )
            return
        if message is None:
            _logger.debug("Ignoring unknown channel event %s", event_name)
            return

        for handler in list(self._handlers[message.event]):
            try:
                handler(message.payload)
            except Exception:
                _logger.warning("Handler for %s failed", message.event, exc_info=True)

        for subscriber in list(self._subscribers):
            try:
                subscriber(message)
            except Exception:
                _logger.warning("Channel subscriber failed for %s", message.event, exc_info=True)
