from __future__ import annotations

from dataclasses import dataclass, field
import threading
import time

from ..online.validation import ScenarioValidationCache
from ..persistence.ledger import LocalScoreLedger, ScenarioScore
from ..persistence.settings import Settings
from .events import TrackerEvent, UpdateChannel


@dataclass(slots=True)
class SessionState:
    """What the tracker knows about the play session currently in progress."""

    current_scenario: str = ""
    local_highscore: float = 0.0
    session_highscore: float = 0.0
    session_start_time: float = field(default_factory=time.time)
    session_best_scores: dict[str, float] = field(default_factory=dict)
    checked_files: set[str] = field(default_factory=set)

    def reset(self, now: float | None = None) -> None:
        self.session_start_time = time.time() if now is None else float(now)
        self.session_best_scores.clear()
        self.checked_files.clear()

    def clear_scenario(self) -> None:
        self.current_scenario = ""
        self.local_highscore = 0.0
        self.session_highscore = 0.0


class TrackerState:
    """State shared by the monitor thread, sync workers and the front end.

    Every accessor holds `_lock` for a single read or write only; callers do
    file and network I/O outside of it.
    """

    def __init__(
        self,
        settings: Settings,
        ledger: LocalScoreLedger,
        validation: ScenarioValidationCache,
        events: UpdateChannel | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._settings = settings
        self.ledger = ledger
        self.validation = validation
        self.events = events if events is not None else UpdateChannel()
        self.session = SessionState()
        self._start_time: int | None = None
        self._score_cache: dict[str, ScenarioScore] = {}
        self._online_scores: dict[str, float] = {}
        self._game_was_running = False
        self._running = threading.Event()
        self._stopped = threading.Event()
        self._stopped.set()
        self.sync_in_progress = threading.Event()

    # settings

    def get_settings(self) -> Settings:
        with self._lock:
            return self._settings

    def set_settings(self, settings: Settings) -> None:
        with self._lock:
            self._settings = settings

    # running flag

    def is_running(self) -> bool:
        return self._running.is_set()

    def set_running(self, running: bool) -> None:
        if running:
            self._stopped.clear()
            self._running.set()
        else:
            self._running.clear()
            self._stopped.set()

    def wait_for_stop(self, timeout: float) -> bool:
        return self._stopped.wait(timeout)

    # presence anchor

    @property
    def start_time(self) -> int | None:
        with self._lock:
            return self._start_time

    @start_time.setter
    def start_time(self, value: int | None) -> None:
        with self._lock:
            self._start_time = value

    # game edge detection

    def swap_game_running(self, running: bool) -> bool:
        with self._lock:
            previous = self._game_was_running
            self._game_was_running = bool(running)
            return previous

    # score snapshots

    def score_for(self, scenario_name: str) -> float:
        with self._lock:
            score = self._score_cache.get(scenario_name)
        return 0.0 if score is None else float(score.highscore)

    def score_cache(self) -> dict[str, ScenarioScore]:
        with self._lock:
            return dict(self._score_cache)

    def refresh_score_cache(self) -> dict[str, ScenarioScore]:
        scores = self.ledger.get_all_scores()
        with self._lock:
            self._score_cache = scores
        return scores

    def online_scores(self) -> dict[str, float]:
        with self._lock:
            return self._online_scores

    def set_online_scores(self, scores: dict[str, float]) -> None:
        with self._lock:
            self._online_scores = dict(scores)

    # session

    def reset_session(self) -> None:
        with self._lock:
            self.session.reset()

    def clear_scenario(self) -> None:
        with self._lock:
            self.session.clear_scenario()

    def current_scenario(self) -> str:
        with self._lock:
            return self.session.current_scenario

    def local_highscore(self) -> float:
        with self._lock:
            return self.session.local_highscore

    def session_highscore(self) -> float:
        with self._lock:
            return self.session.session_highscore

    def session_best(self, scenario_name: str) -> float:
        with self._lock:
            return self.session.session_best_scores.get(scenario_name, 0.0)

    def checked_files(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self.session.checked_files)

    def set_checked_files(self, files: set[str]) -> None:
        with self._lock:
            self.session.checked_files = set(files)

    def enter_scenario(self, scenario_name: str, highscore: float, session_best: float, files: set[str]) -> None:
        with self._lock:
            self.session.current_scenario = scenario_name
            self.session.local_highscore = float(highscore)
            self.session.session_highscore = float(session_best)
            self.session.checked_files = set(files)

    def record_session_score(self, scenario_name: str, score: float) -> bool:
        """Raise the session best for `scenario_name`; True when it improved."""
        with self._lock:
            best = self.session.session_best_scores.get(scenario_name, 0.0)
            if score <= best:
                return False
            self.session.session_best_scores[scenario_name] = float(score)
            self.session.session_highscore = float(score)
            return True

    def set_local_highscore(self, score: float) -> None:
        with self._lock:
            self.session.local_highscore = float(score)

    def send(self, event: TrackerEvent) -> None:
        self.events.send(event)


__all__ = ["SessionState", "TrackerState"]
