from __future__ import annotations

from dataclasses import dataclass
import queue


@dataclass(frozen=True, slots=True)
class RpcStateChanged:
    running: bool


@dataclass(frozen=True, slots=True)
class ScenarioChanged:
    name: str
    highscore: float
    session_best: float


@dataclass(frozen=True, slots=True)
class ScoresUpdated:
    pass


@dataclass(frozen=True, slots=True)
class SyncProgress:
    message: str


@dataclass(frozen=True, slots=True)
class SyncComplete:
    success: bool
    message: str


@dataclass(frozen=True, slots=True)
class Toast:
    message: str


TrackerEvent = RpcStateChanged | ScenarioChanged | ScoresUpdated | SyncProgress | SyncComplete | Toast


class UpdateChannel:
    """Unbounded event queue from the tracker to whatever front end is attached.

    Producers never block; events nobody drains simply accumulate.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[TrackerEvent] = queue.SimpleQueue()

    def send(self, event: TrackerEvent) -> None:
        self._queue.put_nowait(event)

    def get(self, timeout: float | None = None) -> TrackerEvent | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[TrackerEvent]:
        events: list[TrackerEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


__all__ = [
    "RpcStateChanged",
    "ScenarioChanged",
    "ScoresUpdated",
    "SyncComplete",
    "SyncProgress",
    "Toast",
    "TrackerEvent",
    "UpdateChannel",
]
