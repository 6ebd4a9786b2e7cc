from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import requests

from kovaaks_rpc.errors import OnlineSyncError
from kovaaks_rpc.online.api import MAX_PAGES, RemoteScoreClient


class _FakeResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)
        self.content = self.text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"status {self.status_code}")


class _FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self.headers: dict[str, str] = {}
        self.responses = list(responses)
        self.calls: list[tuple[str, dict[str, str], float]] = []

    def get(self, url: str, *, params: dict[str, str], timeout: float) -> _FakeResponse:
        self.calls.append((url, dict(params), timeout))
        if not self.responses:
            return _FakeResponse({"data": []})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _page(*entries: dict[str, Any]) -> _FakeResponse:
    return _FakeResponse({"data": list(entries), "total": 1})


def _client(session: _FakeSession, raw_dir: Path | None = None) -> tuple[RemoteScoreClient, list[float]]:
    sleeps: list[float] = []
    client = RemoteScoreClient(raw_dump_dir=raw_dir, session=session, sleep=sleeps.append)
    return client, sleeps


def test_sync_pages_until_empty_and_keeps_maximum(tmp_path: Path) -> None:
    session = _FakeSession(
        [
            _page(
                {"scenarioName": "Gridshot ", "score": 100.0},
                {"scenarioName": "Gridshot", "score": 120.5},
                {"scenarioName": "Tile Frenzy", "attributes": {"score": 80}},
            ),
            _page(
                {"scenarioName": "Gridshot", "score": 110.0},
                {"scenarioName": "1w4ts", "attributes": False},
                {"scenarioName": "Close Long Strafes", "attributes": None},
            ),
            _page(),
        ]
    )
    client, sleeps = _client(session, tmp_path / "raw_scores")

    scores = client.sync_online_scores_once("aimer/one")

    assert scores == {"Gridshot": 120.5, "Tile Frenzy": 80.0}
    assert len(session.calls) == 3
    url, params, timeout = session.calls[1]
    assert url.endswith("/user/scenario/total-play")
    assert params == {"username": "aimer/one", "page": "1", "max": "100", "sort_param[]": "count"}
    assert timeout == 30.0
    assert sleeps == [0.1, 0.1]
    assert (tmp_path / "raw_scores" / "aimer_one_page_0.json").exists()


def test_sync_top_level_score_wins_over_attributes() -> None:
    session = _FakeSession([_page({"scenarioName": "Gridshot", "score": 50.0, "attributes": {"score": 90.0}})])
    client, _sleeps = _client(session)

    assert client.sync_online_scores_once("aimer") == {"Gridshot": 50.0}


def test_sync_stops_at_page_cap() -> None:
    pages = [_page({"scenarioName": f"S{i}", "score": float(i)}) for i in range(MAX_PAGES + 5)]
    session = _FakeSession(pages)
    client, _sleeps = _client(session)

    scores = client.sync_online_scores_once("aimer")

    assert len(session.calls) == MAX_PAGES
    assert len(scores) == MAX_PAGES


def test_sync_keeps_partial_results_on_later_failure() -> None:
    session = _FakeSession(
        [
            _page({"scenarioName": "Gridshot", "score": 100.0}),
            requests.ConnectionError("reset"),
        ]
    )
    client, _sleeps = _client(session)

    assert client.sync_online_scores_once("aimer") == {"Gridshot": 100.0}


@pytest.mark.parametrize(
    "second",
    [_FakeResponse("not json"), _FakeResponse({"error": "nope"}, status_code=500)],
)
def test_sync_stops_on_bad_page(second: _FakeResponse) -> None:
    session = _FakeSession([_page({"scenarioName": "Gridshot", "score": 100.0}), second])
    client, _sleeps = _client(session)

    assert client.sync_online_scores_once("aimer") == {"Gridshot": 100.0}
    assert len(session.calls) == 2


def test_sync_first_page_transport_error_raises() -> None:
    session = _FakeSession([requests.Timeout("slow")])
    client, _sleeps = _client(session)

    with pytest.raises(OnlineSyncError):
        client.sync_online_scores_once("aimer")


def test_popular_search_matches_case_insensitively() -> None:
    session = _FakeSession([_FakeResponse({"data": [{"scenarioName": "Gridshot Ultimate"}, {"scenarioName": "GRIDSHOT"}]})])
    client, _sleeps = _client(session)

    assert client.search_scenario_popular("Gridshot") is True
    url, params, timeout = session.calls[0]
    assert url.endswith("/scenario/popular")
    assert params == {"page": "0", "max": "5", "scenarioNameSearch": "gridshot"}
    assert timeout == 10.0


def test_popular_search_requires_exact_name() -> None:
    session = _FakeSession([_FakeResponse({"data": [{"scenarioName": "Gridshot Ultimate"}]})])
    client, _sleeps = _client(session)

    assert client.search_scenario_popular("Gridshot") is False


def test_popular_search_failure_raises() -> None:
    session = _FakeSession([_FakeResponse({}, status_code=503)])
    client, _sleeps = _client(session)

    with pytest.raises(OnlineSyncError):
        client.search_scenario_popular("Gridshot")
