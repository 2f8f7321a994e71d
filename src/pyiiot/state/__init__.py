"""State/store layer.

This package is the single source of truth for how snapshot results and
stream events are merged into the displayed telemetry projections.
"""

from pyiiot.state.events import IngestionSource, StateChange, StateSection
from pyiiot.state.store import StateReconciler

__all__ = ["IngestionSource", "StateChange", "StateReconciler", "StateSection"]
