from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
import threading

from ..admission import AdmissionFilter
from ..debug_log import debug_log
from ..errors import PresenceError
from ..game.playlist import playlist_share_code
from ..game.process import is_kovaaks_running
from ..game.save_marker import current_scenario
from ..persistence.ledger import ScoreSource
from ..persistence.settings import Settings, stats_directory
from ..presence import PresenceClient
from ..stats.names import is_known_scenario, normalize_scenario_name
from ..stats.scanner import find_fight_time_and_score, find_initial_scores
from .events import ScenarioChanged, ScoresUpdated, Toast
from .state import TrackerState


@dataclass(frozen=True, slots=True)
class MonitorTiming:
    tick: float = 10.0
    sync_backoff: float = 1.0
    skip_backoff: float = 5.0


@dataclass(frozen=True, slots=True)
class GameProbes:
    is_running: Callable[[], bool] = is_kovaaks_running
    current_scenario: Callable[[], str] = current_scenario
    share_code: Callable[[str], str | None] = playlist_share_code


class SessionMonitor:
    """Polls the game and its stats folder, keeping presence and the ledger current.

    Idle until the game process shows up, then tracking until it goes away.
    Each `tick` returns how long to wait before the next one.
    """

    def __init__(
        self,
        state: TrackerState,
        presence: PresenceClient,
        admission: AdmissionFilter,
        *,
        probes: GameProbes | None = None,
        timing: MonitorTiming | None = None,
        sleep: Callable[[float], object] | None = None,
        stop: threading.Event | None = None,
    ) -> None:
        self.state = state
        self.presence = presence
        self.admission = admission
        self.probes = probes if probes is not None else GameProbes()
        self.timing = timing if timing is not None else MonitorTiming()
        # Per-run token: a restarted tracker must not revive a monitor still finishing its tick.
        self._stop = stop
        if sleep is None:
            sleep = stop.wait if stop is not None else state.wait_for_stop
        self._sleep = sleep

    def should_run(self) -> bool:
        if self._stop is not None and self._stop.is_set():
            return False
        return self.state.is_running()

    def run(self) -> None:
        debug_log("monitor_start")
        while self.should_run():
            try:
                delay = self.tick()
            except Exception as exc:
                debug_log("tick_error", error=f"{type(exc).__name__}: {exc}")
                self.state.send(Toast(message=f"Tracking error: {exc}"))
                delay = self.timing.tick
            self._sleep(delay)
        debug_log("monitor_stop")

    def tick(self) -> float:
        timing = self.timing
        if self.state.sync_in_progress.is_set():
            return timing.sync_backoff

        running = bool(self.probes.is_running())
        was_running = self.state.swap_game_running(running)
        if not running:
            if was_running:
                self._leave_game()
            return timing.tick
        if not was_running:
            self.state.reset_session()
            debug_log("game_detected")

        if not self.presence.is_connected():
            try:
                self.presence.connect()
            except PresenceError as exc:
                debug_log("presence_connect_failed", error=str(exc))
                return timing.skip_backoff

        try:
            scenario = normalize_scenario_name(self.probes.current_scenario())
        except OSError as exc:
            debug_log("scenario_read_failed", error=str(exc))
            return timing.skip_backoff
        if not is_known_scenario(scenario):
            return timing.skip_backoff
        if not self.admission.is_scenario_allowed(scenario):
            debug_log("scenario_skipped", scenario=scenario)
            return timing.skip_backoff

        settings = self.state.get_settings()
        stats_dir = stats_directory(settings)
        if scenario != self.state.current_scenario():
            self._switch_scenario(scenario, stats_dir)
        self._scan_new_scores(scenario, stats_dir)
        self._push_presence(scenario, settings)
        return timing.tick

    def _switch_scenario(self, scenario: str, stats_dir: Path) -> None:
        highscore = self.state.score_for(scenario)
        session_best = self.state.session_best(scenario)
        initial, files = find_initial_scores(scenario, stats_dir)
        if initial > highscore:
            highscore = initial
            self.state.ledger.update_score(scenario, initial, None, ScoreSource.LOCAL)
            self.state.refresh_score_cache()
        self.state.enter_scenario(scenario, highscore, session_best, files)
        debug_log(
            "scenario_changed",
            scenario=scenario,
            highscore=float(highscore),
            session_best=float(session_best),
            files=len(files),
        )
        self.state.send(ScenarioChanged(name=scenario, highscore=highscore, session_best=session_best))

    def _scan_new_scores(self, scenario: str, stats_dir: Path) -> None:
        scan = find_fight_time_and_score(scenario, stats_dir, self.state.checked_files())
        if not scan.found_new or scan.score <= 0.0:
            return
        _initial, files = find_initial_scores(scenario, stats_dir)
        self.state.set_checked_files(files)
        if self.state.record_session_score(scenario, scan.score):
            debug_log("session_best", scenario=scenario, score=float(scan.score))
        if scan.score > self.state.local_highscore():
            self.state.set_local_highscore(scan.score)
            self.state.ledger.update_score(scenario, scan.score, scan.file_time, ScoreSource.LOCAL)
            self.state.refresh_score_cache()
            self.state.send(ScoresUpdated())

    def _push_presence(self, scenario: str, settings: Settings) -> None:
        share_code = self.probes.share_code(settings.installation_path)
        try:
            self.presence.update_presence(
                scenario,
                self.state.start_time,
                self.state.local_highscore(),
                self.state.session_highscore(),
                settings.installation_path,
                share_code,
            )
        except PresenceError as exc:
            debug_log("presence_update_failed", error=str(exc))
            self.state.send(Toast(message=str(exc)))

    def _leave_game(self) -> None:
        debug_log("game_closed")
        try:
            self.presence.clear_presence()
        except PresenceError as exc:
            debug_log("presence_clear_failed", error=str(exc))
        self.state.clear_scenario()
        self.state.send(ScenarioChanged(name="", highscore=0.0, session_best=0.0))


__all__ = ["GameProbes", "MonitorTiming", "SessionMonitor"]
