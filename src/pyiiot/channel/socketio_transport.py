"""Socket.IO wire for the realtime channel."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
import socketio
from socketio import exceptions as sio_exceptions

from pyiiot.channel.realtime import DisconnectCallback, MessageCallback
from pyiiot.config import IiotConfig
from pyiiot.exceptions import IiotChannelError

_logger = logging.getLogger(__name__)

JOIN_DEVICE_EVENT = "join-device"
LEAVE_DEVICE_EVENT = "leave-device"


class SocketIOTransport:
    """``socketio.AsyncClient`` wrapper implementing ``ChannelTransport``.

    Reconnection is disabled on the underlying client; the owning
    :class:`~pyiiot.channel.realtime.RealtimeChannel` decides when to
    reconnect. Every named server event is forwarded verbatim through a
    catch-all handler so the channel can validate and route it.
    """

    def __init__(
        self,
        config: IiotConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._sio = client or socketio.AsyncClient(
            reconnection=False,
            logger=_logger.getChild("socketio"),
            engineio_logger=_logger.getChild("engineio"),
            http_session=http_session,
        )
        self._on_message: MessageCallback | None = None
        self._on_disconnect: DisconnectCallback | None = None
        self._sio.on("*", handler=self._on_any_event)
        self._sio.on("disconnect", handler=self._on_sio_disconnect)

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    async def open(
        self,
        *,
        token: str | None,
        on_message: MessageCallback,
        on_disconnect: DisconnectCallback,
    ) -> None:
        """Connect using the websocket transport only.

        Raises
        ------
        IiotChannelError
            If the handshake fails or times out.
        """
        if self._sio.connected:
            await self.close()
        self._on_message = on_message
        self._on_disconnect = on_disconnect

        headers: dict[str, str] = {}
        auth: dict[str, str] | None = None
        if token:
            headers["Authorization"] = f"Bearer {token}"
            auth = {"token": token}

        _logger.debug(
            "Socket.IO connecting url=%s path=%s",
            self._config.ws_url,
            self._config.socketio_path,
        )
        try:
            await self._sio.connect(
                self._config.ws_url,
                headers=headers,
                auth=auth,
                transports=["websocket"],
                socketio_path=self._config.socketio_path,
                wait_timeout=self._config.channel_connect_timeout,
            )
        except sio_exceptions.ConnectionError as exc:
            self._on_message = None
            self._on_disconnect = None
            raise IiotChannelError(f"Socket.IO connection to {self._config.ws_url} failed: {exc}") from exc

    async def close(self) -> None:
        self._on_message = None
        self._on_disconnect = None
        if self._sio.connected:
            await self._sio.disconnect()

    async def join_device(self, device_id: str) -> None:
        await self._emit(JOIN_DEVICE_EVENT, device_id)

    async def leave_device(self, device_id: str) -> None:
        await self._emit(LEAVE_DEVICE_EVENT, device_id)

    async def _emit(self, event: str, data: Any) -> None:
        if not self._sio.connected:
            raise IiotChannelError(f"Cannot emit {event}: channel is not connected")
        try:
            await self._sio.emit(event, data)
        except sio_exceptions.SocketIOError as exc:
            raise IiotChannelError(f"Emitting {event} failed: {exc}") from exc

    async def _on_any_event(self, event: str, *args: Any) -> None:
        callback = self._on_message
        if callback is None:
            return
        payload = args[0] if args else None
        callback(event, payload)

    async def _on_sio_disconnect(self, *_args: Any) -> None:
        _logger.debug("Socket.IO disconnected")
        callback = self._on_disconnect
        self._on_message = None
        self._on_disconnect = None
        if callback is not None:
            callback()
