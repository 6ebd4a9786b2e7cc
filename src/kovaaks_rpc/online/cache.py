from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import os
from pathlib import Path
import time

import msgspec

from ..debug_log import debug_log
from ..errors import OnlineSyncError
from ..paths import online_cache_dir, online_snapshot_path, raw_scores_dir
from ..persistence.files import backup_corrupt_file, read_nonempty_bytes, write_json
from .api import RemoteScoreClient, safe_username

CACHE_TTL_SECONDS = 7 * 24 * 60 * 60
LOCK_WAIT_SECONDS = 5.0
LOCK_POLL_SECONDS = 0.2


class CacheData(msgspec.Struct):
    fetched_at: int
    scores: dict[str, float] = msgspec.field(default_factory=dict)


class OnlineSnapshot(msgspec.Struct):
    username: str = ""
    last_updated: int = 0
    scores: dict[str, float] = msgspec.field(default_factory=dict)


@dataclass(slots=True)
class OnlineScoreCache:
    """Per-user online score cache with a freshness window and an advisory lock file.

    The lock file only signals "fetch in progress" between processes; it is
    removed after every fetch attempt, successful or not.
    """

    cache_dir: Path
    snapshot_path: Path
    client: RemoteScoreClient
    ttl_seconds: float = CACHE_TTL_SECONDS
    lock_wait_seconds: float = LOCK_WAIT_SECONDS
    lock_poll_seconds: float = LOCK_POLL_SECONDS
    clock: Callable[[], float] = time.time
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def in_dir(cls, base_dir: Path, client: RemoteScoreClient | None = None) -> OnlineScoreCache:
        if client is None:
            client = RemoteScoreClient(raw_dump_dir=raw_scores_dir(base_dir))
        return cls(
            cache_dir=online_cache_dir(base_dir),
            snapshot_path=online_snapshot_path(base_dir),
            client=client,
        )

    def cache_path(self, username: str) -> Path:
        return self.cache_dir / f"{safe_username(username)}_scores.json"

    def lock_path(self, username: str) -> Path:
        return self.cache_dir / f"{safe_username(username)}_scores.lock"

    def load_cache(self, username: str) -> dict[str, float] | None:
        """Cached scores for `username`, or None when absent, stale or unreadable."""
        raw = read_nonempty_bytes(self.cache_path(username))
        if raw is None:
            return None
        try:
            data = msgspec.json.decode(raw, type=CacheData)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            debug_log("online_cache_unreadable", username=username, error=str(exc))
            return None
        age = float(self.clock()) - float(data.fetched_at)
        if age >= float(self.ttl_seconds):
            debug_log("online_cache_stale", username=username, age=int(age))
            return None
        return dict(data.scores)

    def save_cache(self, username: str, scores: dict[str, float]) -> None:
        write_json(self.cache_path(username), CacheData(fetched_at=int(self.clock()), scores=dict(scores)))

    def _try_create_lock(self, path: Path) -> bool | None:
        """True when created, False when already held, None when creation failed otherwise."""
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(str(os.getpid()))
        except FileExistsError:
            return False
        except OSError as exc:
            debug_log("online_lock_error", path=str(path), error=str(exc))
            return None
        return True

    def _wait_for_cache(self, username: str) -> dict[str, float] | None:
        deadline = time.monotonic() + float(self.lock_wait_seconds)
        while time.monotonic() < deadline:
            cached = self.load_cache(username)
            if cached is not None:
                return cached
            self.sleep(float(self.lock_poll_seconds))
        return self.load_cache(username)

    def fetch_user_scenario_scores(self, username: str) -> dict[str, float]:
        """Scenario -> best online score for `username`.

        Serves the cache while fresh. Otherwise fetches remotely, unless another
        process holds the lock, in which case it waits a bounded time for that
        fetch to land and gives up with an empty mapping.
        """
        if not username:
            return {}
        cached = self.load_cache(username)
        if cached is not None:
            debug_log("online_cache_hit", username=username, scenarios=len(cached))
            return cached

        lock_path = self.lock_path(username)
        acquired = self._try_create_lock(lock_path)
        if acquired is False:
            debug_log("online_lock_wait", username=username)
            cached = self._wait_for_cache(username)
            if cached is not None:
                return cached
            acquired = self._try_create_lock(lock_path)
            if acquired is False:
                debug_log("online_lock_timeout", username=username)
                return {}

        try:
            scores = self.client.sync_online_scores_once(username)
            self.save_cache(username, scores)
            try:
                self.save_local_scores(scores, username)
            except OSError as exc:
                debug_log("online_snapshot_save_failed", error=str(exc))
        finally:
            if acquired:
                lock_path.unlink(missing_ok=True)
        return scores

    def load_snapshot(self) -> OnlineSnapshot:
        raw = read_nonempty_bytes(self.snapshot_path)
        if raw is None:
            return OnlineSnapshot()
        try:
            return msgspec.json.decode(raw, type=OnlineSnapshot)
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            debug_log("online_snapshot_corrupt", path=str(self.snapshot_path), error=str(exc))
            backup_corrupt_file(self.snapshot_path)
            return OnlineSnapshot()

    def load_local_scores(self) -> dict[str, float]:
        return dict(self.load_snapshot().scores)

    def save_local_scores(self, scores: dict[str, float], username: str) -> None:
        snapshot = OnlineSnapshot(username=username, last_updated=int(self.clock()), scores=dict(scores))
        write_json(self.snapshot_path, snapshot)

    def update_local_score(self, scenario_name: str, score: float, username: str) -> bool:
        """Raise one snapshot entry; returns True when it improved."""
        scores = self.load_local_scores()
        current = scores.get(scenario_name)
        if current is not None and float(score) <= current:
            return False
        scores[scenario_name] = float(score)
        self.save_local_scores(scores, username)
        return True

    def _fetch_quietly(self, username: str) -> dict[str, float]:
        try:
            return self.fetch_user_scenario_scores(username)
        except OnlineSyncError as exc:
            debug_log("online_lookup_failed", username=username, error=str(exc))
            return {}

    def get_online_score(self, username: str, scenario_name: str) -> float | None:
        """Snapshot first, then the user's listing; None when unknown or unreachable."""
        if not username or not scenario_name:
            return None
        snapshot = self.load_local_scores()
        if scenario_name in snapshot:
            return snapshot[scenario_name]
        return self._fetch_quietly(username).get(scenario_name)

    def is_scenario_available_online(self, username: str, scenario_name: str) -> bool:
        if not username or not scenario_name:
            return False
        if scenario_name in self.load_local_scores():
            return True
        return scenario_name in self._fetch_quietly(username)

    def search_scenario_popular(self, scenario_name: str) -> bool:
        return self.client.search_scenario_popular(scenario_name)


__all__ = [
    "CACHE_TTL_SECONDS",
    "CacheData",
    "LOCK_POLL_SECONDS",
    "LOCK_WAIT_SECONDS",
    "OnlineScoreCache",
    "OnlineSnapshot",
]
