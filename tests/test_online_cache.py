from __future__ import annotations

from pathlib import Path

import msgspec
import pytest

from kovaaks_rpc.errors import OnlineSyncError
from kovaaks_rpc.online.cache import CACHE_TTL_SECONDS, CacheData, OnlineScoreCache, OnlineSnapshot

NOW = 1_700_000_000.0
DAY = 24 * 60 * 60


class _FakeClient:
    def __init__(self, scores: dict[str, float] | None = None, error: Exception | None = None) -> None:
        self.scores = dict(scores or {})
        self.error = error
        self.calls: list[str] = []

    def sync_online_scores_once(self, username: str) -> dict[str, float]:
        self.calls.append(username)
        if self.error is not None:
            raise self.error
        return dict(self.scores)

    def search_scenario_popular(self, scenario_name: str) -> bool:
        return scenario_name == "Gridshot"


def _cache(tmp_path: Path, client: _FakeClient, **kwargs: object) -> OnlineScoreCache:
    cache = OnlineScoreCache.in_dir(tmp_path, client=client)  # type: ignore[arg-type]
    cache.clock = lambda: NOW
    cache.sleep = lambda _seconds: None
    for key, value in kwargs.items():
        setattr(cache, key, value)
    return cache


def _write_cache(cache: OnlineScoreCache, username: str, fetched_at: float, scores: dict[str, float]) -> None:
    path = cache.cache_path(username)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(msgspec.json.encode(CacheData(fetched_at=int(fetched_at), scores=scores)))


def test_fresh_cache_is_served_without_fetching(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 1.0})
    cache = _cache(tmp_path, client)
    _write_cache(cache, "aimer", NOW - 6 * DAY, {"Gridshot": 99.0})

    assert cache.fetch_user_scenario_scores("aimer") == {"Gridshot": 99.0}
    assert client.calls == []


def test_stale_cache_triggers_refetch(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 120.0})
    cache = _cache(tmp_path, client)
    _write_cache(cache, "aimer", NOW - 8 * DAY, {"Gridshot": 99.0})

    assert cache.fetch_user_scenario_scores("aimer") == {"Gridshot": 120.0}
    assert client.calls == ["aimer"]
    stored = msgspec.json.decode(cache.cache_path("aimer").read_bytes(), type=CacheData)
    assert stored.fetched_at == int(NOW)
    assert CACHE_TTL_SECONDS == 7 * DAY


def test_fetch_writes_snapshot_and_releases_lock(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 120.0, "Tile Frenzy": 80.0})
    cache = _cache(tmp_path, client)

    cache.fetch_user_scenario_scores("aimer")

    snapshot = msgspec.json.decode(cache.snapshot_path.read_bytes(), type=OnlineSnapshot)
    assert snapshot == OnlineSnapshot(
        username="aimer",
        last_updated=int(NOW),
        scores={"Gridshot": 120.0, "Tile Frenzy": 80.0},
    )
    assert not cache.lock_path("aimer").exists()


def test_lock_is_released_when_fetch_fails(tmp_path: Path) -> None:
    client = _FakeClient(error=OnlineSyncError("down"))
    cache = _cache(tmp_path, client)

    with pytest.raises(OnlineSyncError):
        cache.fetch_user_scenario_scores("aimer")

    assert not cache.lock_path("aimer").exists()
    assert not cache.cache_path("aimer").exists()


def test_held_lock_without_cache_falls_back_to_empty(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 120.0})
    cache = _cache(tmp_path, client, lock_wait_seconds=0.05, lock_poll_seconds=0.01)
    lock = cache.lock_path("aimer")
    lock.parent.mkdir(parents=True, exist_ok=True)
    lock.write_text("4242", encoding="utf-8")

    assert cache.fetch_user_scenario_scores("aimer") == {}
    assert client.calls == []
    assert lock.exists()


def test_held_lock_serves_cache_written_by_other_fetcher(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 1.0})
    cache = _cache(tmp_path, client, lock_wait_seconds=1.0, lock_poll_seconds=0.01)
    lock = cache.lock_path("aimer")
    lock.parent.mkdir(parents=True, exist_ok=True)
    lock.write_text("4242", encoding="utf-8")

    def other_process_finishes(_seconds: float) -> None:
        _write_cache(cache, "aimer", NOW, {"Gridshot": 140.0})

    cache.sleep = other_process_finishes

    assert cache.fetch_user_scenario_scores("aimer") == {"Gridshot": 140.0}
    assert client.calls == []


def test_lock_released_during_wait_is_taken_over(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 120.0})
    cache = _cache(tmp_path, client, lock_wait_seconds=0.05, lock_poll_seconds=0.01)
    lock = cache.lock_path("aimer")
    lock.parent.mkdir(parents=True, exist_ok=True)
    lock.write_text("4242", encoding="utf-8")
    cache.sleep = lambda _seconds: lock.unlink(missing_ok=True)

    assert cache.fetch_user_scenario_scores("aimer") == {"Gridshot": 120.0}
    assert client.calls == ["aimer"]
    assert not lock.exists()


def test_empty_username_returns_nothing(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 1.0})

    assert _cache(tmp_path, client).fetch_user_scenario_scores("") == {}
    assert client.calls == []


def test_cache_paths_sanitise_username(tmp_path: Path) -> None:
    cache = _cache(tmp_path, _FakeClient())

    assert cache.cache_path("a/b\\c").name == "a_b_c_scores.json"
    assert cache.lock_path("a/b\\c").name == "a_b_c_scores.lock"


def test_update_local_score_only_raises(tmp_path: Path) -> None:
    cache = _cache(tmp_path, _FakeClient())
    cache.save_local_scores({"Gridshot": 100.0}, "aimer")

    assert cache.update_local_score("Gridshot", 90.0, "aimer") is False
    assert cache.update_local_score("Gridshot", 110.0, "aimer") is True
    assert cache.update_local_score("Tile Frenzy", 50.0, "aimer") is True
    assert cache.load_local_scores() == {"Gridshot": 110.0, "Tile Frenzy": 50.0}


def test_corrupt_snapshot_is_backed_up(tmp_path: Path) -> None:
    cache = _cache(tmp_path, _FakeClient())
    cache.snapshot_path.write_text("[broken", encoding="utf-8")

    assert cache.load_local_scores() == {}
    assert cache.snapshot_path.with_suffix(".bak").exists()


def test_lookups_prefer_snapshot(tmp_path: Path) -> None:
    client = _FakeClient({"Tile Frenzy": 70.0})
    cache = _cache(tmp_path, client)
    cache.save_local_scores({"Gridshot": 100.0}, "aimer")

    assert cache.get_online_score("aimer", "Gridshot") == 100.0
    assert client.calls == []
    assert cache.get_online_score("aimer", "Tile Frenzy") == 70.0
    assert cache.is_scenario_available_online("aimer", "Tile Frenzy") is True
    assert cache.is_scenario_available_online("aimer", "Nope") is False
    assert cache.search_scenario_popular("Gridshot") is True


def test_lookups_survive_fetch_failures(tmp_path: Path) -> None:
    client = _FakeClient(error=OnlineSyncError("down"))
    cache = _cache(tmp_path, client)

    assert cache.get_online_score("aimer", "Gridshot") is None
    assert cache.is_scenario_available_online("aimer", "Gridshot") is False
    assert not cache.lock_path("aimer").exists()


def test_lookups_need_username_and_scenario(tmp_path: Path) -> None:
    client = _FakeClient({"Gridshot": 100.0})
    cache = _cache(tmp_path, client)

    assert cache.get_online_score("", "Gridshot") is None
    assert cache.get_online_score("aimer", "") is None
    assert cache.is_scenario_available_online("", "Gridshot") is False
    assert cache.is_scenario_available_online("aimer", "") is False
    assert client.calls == []
