from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import threading
import time

import msgspec

from ..admission import AdmissionFilter
from ..debug_log import debug_log
from ..errors import OnlineSyncError, PresenceError
from ..game.process import set_autostart_enabled
from ..online.cache import OnlineScoreCache
from ..online.validation import ScenarioValidationCache
from ..paths import settings_path
from ..persistence.ledger import LocalScoreLedger
from ..persistence.settings import (
    Settings,
    initialize_installation_path,
    load_settings,
    save_settings,
    stats_directory,
)
from ..presence import DiscordPresence, PresenceClient
from ..stats.scanner import scan_all_stats_folder
from .events import RpcStateChanged, ScoresUpdated, SyncComplete, SyncProgress, Toast, UpdateChannel
from .monitor import GameProbes, MonitorTiming, SessionMonitor
from .state import TrackerState


class TrackerController:
    """Front-end facing operations: tracking on/off, imports, online sync, settings."""

    def __init__(
        self,
        state: TrackerState,
        presence: PresenceClient,
        online: OnlineScoreCache,
        settings_file: Path,
        *,
        probes: GameProbes | None = None,
        timing: MonitorTiming | None = None,
        autostart: Callable[[bool], None] = set_autostart_enabled,
    ) -> None:
        self.state = state
        self.presence = presence
        self.online = online
        self.settings_file = settings_file
        self.probes = probes if probes is not None else GameProbes()
        self.timing = timing
        self._autostart = autostart
        self._monitor_thread: threading.Thread | None = None
        self._monitor_stop: threading.Event | None = None
        self._sync_thread: threading.Thread | None = None
        self.admission = AdmissionFilter(
            settings=state.get_settings,
            validation=state.validation,
            online_scores=state.online_scores,
            search=online.search_scenario_popular,
        )

    @classmethod
    def from_data_dir(cls, base_dir: Path, *, events: UpdateChannel | None = None) -> TrackerController:
        settings_file = settings_path(base_dir)
        settings = initialize_installation_path(load_settings(settings_file), settings_file)
        state = TrackerState(
            settings=settings,
            ledger=LocalScoreLedger.in_dir(base_dir),
            validation=ScenarioValidationCache.in_dir(base_dir),
            events=events,
        )
        state.refresh_score_cache()
        online = OnlineScoreCache.in_dir(base_dir)
        state.set_online_scores(online.load_local_scores())
        return cls(state, DiscordPresence(), online, settings_file)

    @property
    def events(self) -> UpdateChannel:
        return self.state.events

    def _toast(self, message: str) -> None:
        self.state.send(Toast(message=message))

    # tracking

    def auto_start(self) -> bool:
        """Start tracking at launch unless the user opted for manual start."""
        if self.state.get_settings().open_manually:
            return False
        if not self.probes.is_running():
            return False
        return self.start_tracking()

    def start_tracking(self) -> bool:
        if self.state.is_running():
            return True
        try:
            self.presence.connect()
        except PresenceError as exc:
            debug_log("tracking_start_failed", error=str(exc))
            self._toast(f"Failed to connect: {exc}")
            return False
        self.state.start_time = int(time.time())
        self.state.reset_session()
        self.state.set_running(True)
        self._monitor_stop = threading.Event()
        monitor = SessionMonitor(
            self.state,
            self.presence,
            self.admission,
            probes=self.probes,
            timing=self.timing,
            stop=self._monitor_stop,
        )
        self._monitor_thread = threading.Thread(target=monitor.run, name="kovaaks-monitor", daemon=True)
        self._monitor_thread.start()
        debug_log("tracking_started")
        self.state.send(RpcStateChanged(running=True))
        self._toast("Discord RPC started")
        return True

    def stop_tracking(self, *, join_timeout: float | None = None) -> None:
        if not self.state.is_running():
            return
        self.state.set_running(False)
        if self._monitor_stop is not None:
            self._monitor_stop.set()
            self._monitor_stop = None
        try:
            self.presence.clear_presence()
            self.presence.disconnect()
        except PresenceError as exc:
            debug_log("presence_shutdown_failed", error=str(exc))
        self.state.start_time = None
        self.state.clear_scenario()
        thread = self._monitor_thread
        self._monitor_thread = None
        if thread is not None and join_timeout is not None:
            thread.join(join_timeout)
        debug_log("tracking_stopped")
        self.state.send(RpcStateChanged(running=False))
        self._toast("Discord RPC stopped")

    # scores

    def scan_local_stats(self) -> int | None:
        """Import every stats log into the ledger; returns the scenario count."""
        stats_dir = stats_directory(self.state.get_settings())
        if not stats_dir.exists():
            self._toast("Stats folder not found")
            return None
        scores = scan_all_stats_folder(stats_dir)
        try:
            self.state.ledger.populate_from_stats_folder(scores)
        except OSError as exc:
            self._toast(f"Failed to save scores: {exc}")
            return None
        self.state.refresh_score_cache()
        self.state.send(ScoresUpdated())
        self._toast(f"Imported {len(scores)} scenarios")
        return len(scores)

    def sync_online_scores(self, *, wait: bool = False) -> bool:
        """Fetch the user's online scores on a worker thread and merge them.

        Returns False when no sync was started.
        """
        if self.state.sync_in_progress.is_set():
            return False
        username = self.state.get_settings().webapp_username
        if not username:
            self._toast("Please enter a username first")
            return False
        self.state.sync_in_progress.set()
        self._sync_thread = threading.Thread(
            target=self._run_sync,
            args=(username,),
            name="kovaaks-sync",
            daemon=True,
        )
        self._sync_thread.start()
        if wait:
            self._sync_thread.join()
        return True

    def _run_sync(self, username: str) -> None:
        try:
            self.state.send(SyncProgress(message=f"Fetching scores for {username}"))
            debug_log("sync_start", username=username)
            try:
                online_scores = self.online.fetch_user_scenario_scores(username)
            except (OnlineSyncError, OSError) as exc:
                debug_log("sync_failed", error=str(exc))
                self.state.send(SyncComplete(success=False, message=f"Sync failed: {exc}"))
                return
            self.state.set_online_scores(online_scores)
            try:
                self.state.ledger.merge_online_scores(online_scores)
            except OSError as exc:
                debug_log("sync_merge_failed", error=str(exc))
                self.state.send(SyncComplete(success=False, message=f"Failed to merge scores: {exc}"))
                return
            self.state.refresh_score_cache()
            settings = msgspec.structs.replace(
                self.state.get_settings(),
                online_scores_synced=True,
                last_sync_time=int(time.time()),
            )
            self.state.set_settings(settings)
            try:
                save_settings(settings, self.settings_file)
            except OSError as exc:
                debug_log("settings_save_failed", error=str(exc))
            debug_log("sync_complete", scenarios=len(online_scores))
            self.state.send(ScoresUpdated())
            self.state.send(SyncComplete(success=True, message=f"Synced {len(online_scores)} scenarios"))
        finally:
            self.state.sync_in_progress.clear()

    # settings

    def reset_sync_flag(self) -> None:
        settings = msgspec.structs.replace(self.state.get_settings(), online_scores_synced=False)
        self.state.set_settings(settings)
        try:
            save_settings(settings, self.settings_file)
        except OSError as exc:
            debug_log("settings_save_failed", error=str(exc))
        self._toast("Sync flag reset")

    def save_settings(self, new_settings: Settings) -> bool:
        previous = self.state.get_settings()
        new_settings = msgspec.structs.replace(new_settings, last_sync_time=previous.last_sync_time)
        try:
            save_settings(new_settings, self.settings_file)
        except OSError as exc:
            self._toast(f"Failed to save: {exc}")
            return False
        if new_settings.start_with_windows != previous.start_with_windows:
            try:
                self._autostart(new_settings.start_with_windows)
            except OSError as exc:
                debug_log("autostart_failed", error=str(exc))
        self.state.set_settings(new_settings)
        self._toast("Settings saved")
        return True


__all__ = ["TrackerController"]
