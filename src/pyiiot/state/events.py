"""Change notifications emitted by the reconciler.

Every apply operation on :class:`pyiiot.state.store.StateReconciler`
produces one :class:`StateChange` naming the projection it touched and
where the data came from.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class IngestionSource(StrEnum):
    SNAPSHOT = "snapshot"
    STREAM = "stream"


class StateSection(StrEnum):
    SENSORS = "sensors"
    DEVICES = "devices"
    METRICS = "metrics"


class StateChange(BaseModel):
    """A projection was replaced or updated."""

    model_config = ConfigDict(frozen=True)

    section: StateSection
    source: IngestionSource
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    key: str | None = Field(default=None, description="Device id for single-device updates.")
