from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import enum
from pathlib import Path
import threading

import msgspec

from ..debug_log import debug_log
from ..paths import local_scores_path
from ..stats.names import normalize_scenario_name
from .files import backup_corrupt_file, read_nonempty_bytes, write_json

LEDGER_VERSION = 1


class ScoreSource(str, enum.Enum):
    LOCAL = "Local"
    ONLINE = "Online"


class ScenarioScore(msgspec.Struct, kw_only=True, omit_defaults=True):
    scenario_name: str
    highscore: float
    last_played: int | None = None
    source: ScoreSource


class LedgerFile(msgspec.Struct):
    version: int = LEDGER_VERSION
    scores: dict[str, ScenarioScore] = msgspec.field(default_factory=dict)


def _unix_seconds(timestamp: float | None) -> int | None:
    if timestamp is None:
        return None
    seconds = int(timestamp)
    if seconds < 0:
        return None
    return seconds


def migrate_ledger(data: LedgerFile) -> tuple[LedgerFile, int]:
    """Fold legacy challenge-suffixed keys into their base scenario.

    Returns the migrated file and how many keys were renamed. Colliding entries
    keep the one with the higher score.
    """
    merged: dict[str, ScenarioScore] = {}
    renamed = 0
    for old_name, score in data.scores.items():
        name = normalize_scenario_name(old_name)
        if name != old_name:
            renamed += 1
            score = msgspec.structs.replace(score, scenario_name=name)
        existing = merged.get(name)
        if existing is None or score.highscore > existing.highscore:
            merged[name] = score
    return LedgerFile(version=int(data.version), scores=merged), renamed


@dataclass(slots=True)
class LocalScoreLedger:
    """Best score per scenario, persisted as one JSON file with atomic replace."""

    path: Path
    _lock: threading.RLock = field(init=False, default_factory=threading.RLock, repr=False)

    @classmethod
    def in_dir(cls, base_dir: Path) -> LocalScoreLedger:
        return cls(path=local_scores_path(base_dir))

    def load(self) -> LedgerFile:
        with self._lock:
            raw = read_nonempty_bytes(self.path)
            if raw is None:
                return LedgerFile()
            try:
                data = msgspec.json.decode(raw, type=LedgerFile)
            except (msgspec.DecodeError, msgspec.ValidationError) as exc:
                debug_log("ledger_corrupt", path=str(self.path), error=str(exc))
                backup_corrupt_file(self.path)
                return LedgerFile()
            migrated, renamed = migrate_ledger(data)
            if renamed:
                debug_log("ledger_migrated", renamed=int(renamed), entries=len(migrated.scores))
                try:
                    self.save(migrated)
                except OSError as exc:
                    debug_log("ledger_migration_save_failed", error=str(exc))
            return migrated

    def save(self, data: LedgerFile) -> None:
        with self._lock:
            write_json(self.path, data)

    def get_score(self, scenario_name: str) -> ScenarioScore | None:
        return self.load().scores.get(normalize_scenario_name(scenario_name))

    def get_all_scores(self) -> dict[str, ScenarioScore]:
        return dict(self.load().scores)

    def was_played_locally(self, scenario_name: str) -> bool:
        score = self.get_score(scenario_name)
        return score is not None and score.last_played is not None

    def update_score(
        self,
        scenario_name: str,
        new_score: float,
        last_played: float | None = None,
        source: ScoreSource = ScoreSource.LOCAL,
    ) -> bool:
        """Record a score; returns True when it is a new high score.

        The file is saved even when the score does not improve so that a newer
        `last_played` is kept.
        """
        name = normalize_scenario_name(scenario_name)
        played = _unix_seconds(last_played)
        with self._lock:
            data = self.load()
            existing = data.scores.get(name)
            is_new_highscore = False
            if existing is None:
                data.scores[name] = ScenarioScore(
                    scenario_name=name,
                    highscore=float(new_score),
                    last_played=played,
                    source=source,
                )
                is_new_highscore = True
            elif float(new_score) > existing.highscore:
                existing.highscore = float(new_score)
                existing.last_played = played
                existing.source = source
                is_new_highscore = True
            elif played is not None:
                existing.last_played = played
            self.save(data)
        if is_new_highscore:
            debug_log("ledger_highscore", scenario=name, score=float(new_score), source=source.value)
        return is_new_highscore

    def populate_from_stats_folder(self, stats_scores: Mapping[str, tuple[float, float | None]]) -> int:
        """Bulk import of a stats folder scan; returns entries created or improved."""
        updated = 0
        with self._lock:
            data = self.load()
            for raw_name, (highscore, last_played) in stats_scores.items():
                name = normalize_scenario_name(raw_name)
                played = _unix_seconds(last_played)
                existing = data.scores.get(name)
                if existing is None:
                    data.scores[name] = ScenarioScore(
                        scenario_name=name,
                        highscore=float(highscore),
                        last_played=played,
                        source=ScoreSource.LOCAL,
                    )
                    updated += 1
                elif float(highscore) > existing.highscore:
                    existing.highscore = float(highscore)
                    existing.last_played = played
                    existing.source = ScoreSource.LOCAL
                    updated += 1
                elif played is not None and existing.last_played != played:
                    existing.last_played = played
            self.save(data)
        debug_log("ledger_import", scanned=len(stats_scores), updated=int(updated))
        return updated

    def merge_online_scores(self, online_scores: Mapping[str, float]) -> int:
        """Take online scores that beat the ledger; returns entries created or improved."""
        updated = 0
        with self._lock:
            data = self.load()
            for raw_name, online_score in online_scores.items():
                name = normalize_scenario_name(raw_name)
                existing = data.scores.get(name)
                if existing is None:
                    data.scores[name] = ScenarioScore(
                        scenario_name=name,
                        highscore=float(online_score),
                        last_played=None,
                        source=ScoreSource.ONLINE,
                    )
                    updated += 1
                elif float(online_score) > existing.highscore:
                    existing.highscore = float(online_score)
                    existing.source = ScoreSource.ONLINE
                    updated += 1
            self.save(data)
        debug_log("ledger_merge_online", received=len(online_scores), updated=int(updated))
        return updated


__all__ = [
    "LEDGER_VERSION",
    "LedgerFile",
    "LocalScoreLedger",
    "ScenarioScore",
    "ScoreSource",
    "migrate_ledger",
]
