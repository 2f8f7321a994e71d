"""In-memory telemetry state.

This is the only component allowed to write the displayed projections.
Snapshot results and stream events are applied in whatever order they
arrive; the last applied value wins. A late snapshot may therefore
overwrite fresher stream data, which callers accept.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable

from pyiiot._constants import TELEMETRY_CAPACITY
from pyiiot.models.device import DeviceState, DeviceStatus
from pyiiot.models.metrics import SystemMetrics
from pyiiot.models.sensor import SensorReading
from pyiiot.state.events import IngestionSource, StateChange, StateSection

_logger = logging.getLogger(__name__)

StateListener = Callable[[StateChange], None]


class StateReconciler:
    """Owns the telemetry buffer, the device table and the metrics value.

    All operations are synchronous and perform no I/O, so each one runs
    to completion within a single event-loop turn. Readers always get
    copies; the models themselves are frozen.
    """

    def __init__(self, *, capacity: int = TELEMETRY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        # Newest first: appendleft + maxlen evicts from the tail.
        self._readings: deque[SensorReading] = deque(maxlen=capacity)
        self._devices: dict[str, DeviceStatus] = {}
        self._metrics = SystemMetrics()
        self._listeners: list[StateListener] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* after every applied change. Returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, section: StateSection, source: IngestionSource, key: str | None = None) -> None:
        if not self._listeners:
            return
        change = StateChange(section=section, source=source, key=key)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.debug("State listener failed for %s", section, exc_info=True)

    # ------------------------------------------------------------------
    # Sensor readings
    # ------------------------------------------------------------------

    def apply_sensor_snapshot(self, readings: Iterable[SensorReading]) -> None:
        """Replace the buffer with the leading readings, order preserved."""
        buffer: deque[SensorReading] = deque(maxlen=self._capacity)
        for reading in readings:
            if len(buffer) == self._capacity:
                break
            buffer.append(reading)
        self._readings = buffer
        self._notify(StateSection.SENSORS, IngestionSource.SNAPSHOT)

    def apply_sensor_event(self, reading: SensorReading) -> None:
        """Prepend *reading*, evicting the oldest beyond capacity."""
        self._readings.appendleft(reading)
        self._notify(StateSection.SENSORS, IngestionSource.STREAM, reading.device_id)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def apply_device_snapshot(self, devices: Iterable[DeviceStatus]) -> None:
        """Replace the device table; the last duplicate of an id wins."""
        table: dict[str, DeviceStatus] = {}
        for device in devices:
            table[device.device_id] = device
        self._devices = table
        self._notify(StateSection.DEVICES, IngestionSource.SNAPSHOT)

    def apply_device_event(self, status: DeviceStatus) -> None:
        """Insert or fully replace the entry for ``status.device_id``."""
        self._devices[status.device_id] = status
        self._notify(StateSection.DEVICES, IngestionSource.STREAM, status.device_id)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def apply_metrics_snapshot(self, metrics: SystemMetrics) -> None:
        self._metrics = metrics
        self._notify(StateSection.METRICS, IngestionSource.SNAPSHOT)

    def apply_metrics_event(self, metrics: SystemMetrics) -> None:
        self._metrics = metrics
        self._notify(StateSection.METRICS, IngestionSource.STREAM)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def sensor_readings(self) -> list[SensorReading]:
        """Buffered readings, newest first."""
        return list(self._readings)

    def devices(self) -> dict[str, DeviceStatus]:
        return dict(self._devices)

    def get_device(self, device_id: str) -> DeviceStatus | None:
        return self._devices.get(device_id)

    def metrics(self) -> SystemMetrics:
        return self._metrics

    def readings_of_type(self, sensor_type: str, limit: int = 20) -> list[SensorReading]:
        """Newest-first readings of one sensor type, at most *limit*."""
        matched: list[SensorReading] = []
        for reading in self._readings:
            if len(matched) >= limit:
                break
            if reading.sensor_type == sensor_type:
                matched.append(reading)
        return matched

    def device_status_counts(self) -> dict[DeviceState, int]:
        """Number of devices per :class:`DeviceState` (every state present)."""
        counts = {state: 0 for state in DeviceState}
        for device in self._devices.values():
            counts[device.status] += 1
        return counts
