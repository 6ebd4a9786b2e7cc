from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
import time
from typing import Any

import msgspec
import requests

from ..debug_log import debug_log
from ..errors import OnlineSyncError

BASE_URL = "https://kovaaks.com/webapp-backend"
PAGE_SIZE = 100
MAX_PAGES = 20
PAGE_DELAY_SECONDS = 0.1
REQUEST_TIMEOUT_SECONDS = 30.0
SEARCH_TIMEOUT_SECONDS = 10.0
SEARCH_MAX_RESULTS = 5
USER_AGENT = "kovaaks-rpc"


class ScenarioEntry(msgspec.Struct, rename={"scenario_name": "scenarioName"}):
    scenario_name: str
    score: float | None = None
    # Object, `false` or `null` depending on the listing.
    attributes: Any = None


class TotalPlayPage(msgspec.Struct):
    data: list[ScenarioEntry] = msgspec.field(default_factory=list)


class PopularEntry(msgspec.Struct, rename={"scenario_name": "scenarioName"}):
    scenario_name: str


class PopularPage(msgspec.Struct):
    data: list[PopularEntry] = msgspec.field(default_factory=list)


def safe_username(username: str) -> str:
    return str(username).replace("/", "_").replace("\\", "_")


def entry_score(entry: ScenarioEntry) -> float | None:
    """Top-level score first, then `attributes.score`."""
    if entry.score is not None:
        return float(entry.score)
    attributes = entry.attributes
    if not isinstance(attributes, dict):
        return None
    value = attributes.get("score")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def accumulate_page(scores: dict[str, float], entries: list[ScenarioEntry]) -> int:
    added = 0
    for entry in entries:
        scenario = entry.scenario_name.strip()
        score = entry_score(entry)
        if score is None or not scenario:
            continue
        scores[scenario] = max(scores.get(scenario, 0.0), score)
        added += 1
    return added


@dataclass(slots=True)
class RemoteScoreClient:
    """KovaaK's web app listing client."""

    base_url: str = BASE_URL
    raw_dump_dir: Path | None = None
    session: requests.Session = field(default_factory=requests.Session)
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def _dump_raw_page(self, username: str, page: int, body: str) -> None:
        if self.raw_dump_dir is None:
            return
        try:
            self.raw_dump_dir.mkdir(parents=True, exist_ok=True)
            path = self.raw_dump_dir / f"{safe_username(username)}_page_{page}.json"
            path.write_text(body, encoding="utf-8")
        except OSError as exc:
            debug_log("raw_dump_failed", page=int(page), error=str(exc))

    def sync_online_scores_once(self, username: str) -> dict[str, float]:
        """Page through the user's scenario listing, best score per scenario.

        Raises OnlineSyncError only when the first page cannot be fetched;
        later failures keep what was already collected.
        """
        if not username:
            raise OnlineSyncError("username is empty")
        url = f"{self.base_url}/user/scenario/total-play"
        scores: dict[str, float] = {}
        page = 0
        while page < MAX_PAGES:
            try:
                response = self.session.get(
                    url,
                    params={
                        "username": username,
                        "page": str(page),
                        "max": str(PAGE_SIZE),
                        "sort_param[]": "count",
                    },
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
                if not response.ok:
                    debug_log("sync_page_status", page=int(page), status=int(response.status_code))
                    break
                body = response.text
            except requests.RequestException as exc:
                debug_log("sync_page_error", page=int(page), error=str(exc))
                if page == 0:
                    raise OnlineSyncError(f"failed to fetch scores for {username}: {exc}") from exc
                break
            self._dump_raw_page(username, page, body)
            try:
                listing = msgspec.json.decode(body, type=TotalPlayPage)
            except (msgspec.DecodeError, msgspec.ValidationError) as exc:
                debug_log("sync_page_parse_error", page=int(page), error=str(exc))
                break
            if not listing.data:
                break
            added = accumulate_page(scores, listing.data)
            debug_log("sync_page", page=int(page), entries=len(listing.data), added=int(added))
            page += 1
            if page < MAX_PAGES:
                self.sleep(PAGE_DELAY_SECONDS)
        debug_log("sync_done", username=username, pages=int(page), scenarios=len(scores))
        return scores

    def search_scenario_popular(self, scenario_name: str) -> bool:
        """Whether the popular-scenario search lists `scenario_name` exactly.

        Raises OnlineSyncError when the search itself fails.
        """
        if not scenario_name:
            return False
        try:
            response = self.session.get(
                f"{self.base_url}/scenario/popular",
                params={
                    "page": "0",
                    "max": str(SEARCH_MAX_RESULTS),
                    "scenarioNameSearch": scenario_name.lower(),
                },
                timeout=SEARCH_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            listing = msgspec.json.decode(response.content, type=PopularPage)
        except (requests.RequestException, msgspec.DecodeError, msgspec.ValidationError) as exc:
            raise OnlineSyncError(f"scenario search failed for {scenario_name!r}: {exc}") from exc
        wanted = scenario_name.lower()
        return any(entry.scenario_name.lower() == wanted for entry in listing.data)


__all__ = [
    "BASE_URL",
    "MAX_PAGES",
    "PAGE_DELAY_SECONDS",
    "PAGE_SIZE",
    "RemoteScoreClient",
    "ScenarioEntry",
    "accumulate_page",
    "entry_score",
    "safe_username",
]
