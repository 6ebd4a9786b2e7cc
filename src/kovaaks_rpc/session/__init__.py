from __future__ import annotations

from .controller import TrackerController
from .events import (
    RpcStateChanged,
    ScenarioChanged,
    ScoresUpdated,
    SyncComplete,
    SyncProgress,
    Toast,
    TrackerEvent,
    UpdateChannel,
)
from .monitor import GameProbes, MonitorTiming, SessionMonitor
from .state import SessionState, TrackerState

__all__ = [
    "GameProbes",
    "MonitorTiming",
    "RpcStateChanged",
    "ScenarioChanged",
    "ScoresUpdated",
    "SessionMonitor",
    "SessionState",
    "SyncComplete",
    "SyncProgress",
    "Toast",
    "TrackerController",
    "TrackerEvent",
    "UpdateChannel",
]
