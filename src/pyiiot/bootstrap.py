"""Dashboard bootstrap: parallel snapshot loads plus the realtime channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Literal

from pyiiot._api import telemetry
from pyiiot._constants import LOAD_FAILURE_BANNER
from pyiiot._transport import Transport
from pyiiot.channel.messages import ChannelEvent
from pyiiot.channel.realtime import RealtimeChannel
from pyiiot.exceptions import IiotError
from pyiiot.state.events import StateSection
from pyiiot.state.store import StateReconciler

_logger = logging.getLogger(__name__)

LoadKey = StateSection | Literal["channel"]


class BootstrapController:
    """Brings a dashboard view up and tears it down.

    :meth:`start` fires the three snapshot requests and the channel
    connect together. Each snapshot is applied to the reconciler the
    moment it resolves; there is no barrier and no ordering against the
    stream, so a snapshot resolving after a newer stream event replaces
    that event's effect.

    Failures never escape :meth:`start`. They are kept in
    :attr:`load_errors` and summarized by :attr:`banner`.
    """

    def __init__(
        self,
        transport: Transport,
        channel: RealtimeChannel,
        reconciler: StateReconciler,
        *,
        sensor_limit: int | None = None,
    ) -> None:
        self._transport = transport
        self._channel = channel
        self._reconciler = reconciler
        self._sensor_limit = sensor_limit if sensor_limit is not None else reconciler.capacity
        self._removers: list[Callable[[], None]] = []
        self._load_errors: dict[LoadKey, IiotError] = {}
        self._loading = False
        self._stop_epoch = 0

    @property
    def reconciler(self) -> StateReconciler:
        return self._reconciler

    @property
    def channel(self) -> RealtimeChannel:
        return self._channel

    @property
    def loading(self) -> bool:
        """``True`` while :meth:`start` is running."""
        return self._loading

    @property
    def load_errors(self) -> dict[LoadKey, IiotError]:
        return dict(self._load_errors)

    @property
    def banner(self) -> str | None:
        """Single user-facing message when anything failed to load."""
        return LOAD_FAILURE_BANNER if self._load_errors else None

    def _register_handlers(self) -> None:
        if self._removers:
            return
        self._removers = [
            self._channel.on(ChannelEvent.SENSOR_DATA, self._reconciler.apply_sensor_event),
            self._channel.on(ChannelEvent.DEVICE_STATUS, self._reconciler.apply_device_event),
            self._channel.on(ChannelEvent.SYSTEM_METRICS, self._reconciler.apply_metrics_event),
        ]

    def start(self) -> Coroutine[Any, Any, None]:
        """Load all snapshots and connect the channel concurrently.

        The returned coroutine settles once every task has, successful
        or not. A :meth:`stop` issued after this call, even one that runs
        before the coroutine is first scheduled, cancels the start: no
        handlers are registered, no snapshot is applied and the channel
        is left closed.
        """
        return self._run(self._stop_epoch)

    async def _run(self, epoch: int) -> None:
        if epoch != self._stop_epoch:
            _logger.debug("Dashboard start skipped, stopped before it ran")
            return
        self._register_handlers()
        self._load_errors.clear()
        self._loading = True
        try:
            await asyncio.gather(
                self._load(
                    epoch,
                    StateSection.METRICS,
                    lambda: telemetry.fetch_system_metrics(self._transport),
                    self._reconciler.apply_metrics_snapshot,
                ),
                self._load(
                    epoch,
                    StateSection.SENSORS,
                    lambda: telemetry.fetch_recent_sensors(self._transport, limit=self._sensor_limit),
                    self._reconciler.apply_sensor_snapshot,
                ),
                self._load(
                    epoch,
                    StateSection.DEVICES,
                    lambda: telemetry.fetch_device_statuses(self._transport),
                    self._reconciler.apply_device_snapshot,
                ),
                self._connect_channel(epoch),
            )
        finally:
            self._loading = False
        if self._load_errors:
            _logger.warning("Dashboard loaded with errors: %s", ", ".join(str(key) for key in self._load_errors))

    async def stop(self) -> None:
        """Disconnect the channel and stop applying stream events.

        Reconciled state is kept.
        """
        self._stop_epoch += 1
        for remove in self._removers:
            remove()
        self._removers = []
        await self._channel.disconnect()

    async def _load(
        self,
        epoch: int,
        section: StateSection,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], None],
    ) -> None:
        try:
            result = await fetch()
        except IiotError as exc:
            if epoch == self._stop_epoch:
                self._load_errors[section] = exc
                _logger.warning("Loading %s snapshot failed: %s", section, exc)
            return
        if epoch != self._stop_epoch:
            _logger.debug("Dropping %s snapshot, dashboard stopped", section)
            return
        apply(result)

    async def _connect_channel(self, epoch: int) -> None:
        try:
            await self._channel.connect()
        except IiotError as exc:
            if epoch == self._stop_epoch:
                self._load_errors["channel"] = exc
                _logger.warning("Realtime channel connect failed: %s", exc)
            return
        # stop() may have run while connect() held the lock.
        if epoch != self._stop_epoch:
            await self._channel.disconnect()
