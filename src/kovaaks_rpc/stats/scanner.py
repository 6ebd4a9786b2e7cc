from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import math
import os
from pathlib import Path

from .names import normalize_scenario_name

SCORE_MARKER = "Score:,"
LOG_SUFFIX = ".csv"
NAME_SEPARATOR = " - "


@dataclass(frozen=True, slots=True)
class FileScore:
    """Best score found in one stats file; `found` is False when no marker parsed."""

    score: float
    found: bool


@dataclass(frozen=True, slots=True)
class IncrementalScan:
    score: float
    found_new: bool
    file_time: float | None


def round_score(value: float) -> float:
    # Half away from zero: 123.45 -> 123.5.
    scaled = abs(float(value)) * 10.0
    return math.copysign(math.floor(scaled + 0.5), value) / 10.0


def parse_score_line(line: str) -> float | None:
    if SCORE_MARKER not in line:
        return None
    try:
        score = float(line.split(",")[1])
    except ValueError:
        return None
    if not math.isfinite(score):
        return None
    return score


def read_file_score(path: Path, *, first_only: bool = False) -> FileScore | None:
    """Stream one stats file; None when it cannot be read or decoded."""
    best = 0.0
    found = False
    try:
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                score = parse_score_line(line)
                if score is None:
                    continue
                if first_only:
                    return FileScore(score=float(score), found=True)
                found = True
                best = max(best, score)
    except (OSError, UnicodeDecodeError):
        return None
    return FileScore(score=float(best), found=bool(found))


def file_time(path: Path) -> float | None:
    """Creation time of `path`, falling back to its modification time."""
    try:
        stat = path.stat()
    except OSError:
        return None
    birth = getattr(stat, "st_birthtime", None)
    if birth is not None:
        return float(birth)
    return float(stat.st_mtime)


def _iter_entries(directory: Path) -> Iterator[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as entries:
            yield from entries
    except OSError:
        return


def _scenario_prefix(scenario_name: str) -> str:
    return f"{scenario_name}{NAME_SEPARATOR}"


def find_initial_scores(scenario_name: str, stats_dir: Path) -> tuple[float, set[str]]:
    """Best score on disk for a scenario plus every log filename inspected."""
    prefix = _scenario_prefix(scenario_name)
    highscore = 0.0
    checked: set[str] = set()
    for entry in _iter_entries(Path(stats_dir)):
        name = entry.name
        if not (name.startswith(prefix) and name.endswith(LOG_SUFFIX)):
            continue
        result = read_file_score(Path(entry.path))
        if result is not None and result.found:
            highscore = max(highscore, result.score)
        checked.add(name)
    return round_score(highscore), checked


def find_fight_time_and_score(
    scenario_name: str,
    stats_dir: Path,
    excluded_filenames: set[str] | frozenset[str],
) -> IncrementalScan:
    """Scan only the scenario's logs not in `excluded_filenames`."""
    prefix = _scenario_prefix(scenario_name)
    max_score = 0.0
    found_new = False
    newest_time: float | None = None
    for entry in _iter_entries(Path(stats_dir)):
        name = entry.name
        if not name.startswith(prefix) or name in excluded_filenames:
            continue
        path = Path(entry.path)
        result = read_file_score(path)
        if result is None or not result.found:
            continue
        found_new = True
        if result.score > max_score:
            max_score = result.score
            newest_time = file_time(path)
    return IncrementalScan(score=round_score(max_score), found_new=found_new, file_time=newest_time)


def last_played_time(scenario_name: str, stats_dir: Path) -> float | None:
    prefix = _scenario_prefix(scenario_name)
    newest: float | None = None
    for entry in _iter_entries(Path(stats_dir)):
        name = entry.name
        if not (name.startswith(prefix) and name.endswith(LOG_SUFFIX)):
            continue
        stamp = file_time(Path(entry.path))
        if stamp is None:
            continue
        newest = stamp if newest is None else max(newest, stamp)
    return newest


def scenario_from_filename(filename: str) -> str:
    stem = filename.removesuffix(LOG_SUFFIX)
    head, sep, _tail = stem.rpartition(NAME_SEPARATOR)
    if not sep:
        return stem
    return head


def scan_stats_folder_since(
    stats_dir: Path,
    since_timestamp: int | None = None,
) -> dict[str, tuple[float, float | None]]:
    """Best score and its file time per normalized scenario across a stats folder.

    With `since_timestamp`, files whose whole-second mtime is not newer are
    skipped. Without it nothing is filtered.
    """
    scores: dict[str, tuple[float, float | None]] = {}
    root = Path(stats_dir)
    if not root.exists():
        return scores
    for entry in _iter_entries(root):
        path = Path(entry.path)
        if path.suffix != LOG_SUFFIX:
            continue
        try:
            modified: float | None = float(path.stat().st_mtime)
        except OSError:
            modified = None
        if since_timestamp is not None and modified is not None:
            if int(modified) <= int(since_timestamp):
                continue
        scenario = normalize_scenario_name(scenario_from_filename(entry.name))
        if not scenario:
            continue
        result = read_file_score(path, first_only=True)
        if result is None or not result.found:
            continue
        score = round_score(result.score)
        existing = scores.get(scenario)
        if existing is None or score > existing[0]:
            scores[scenario] = (score, modified)
    return scores


def scan_all_stats_folder(stats_dir: Path) -> dict[str, tuple[float, float | None]]:
    return scan_stats_folder_since(stats_dir, None)


__all__ = [
    "FileScore",
    "IncrementalScan",
    "SCORE_MARKER",
    "file_time",
    "find_fight_time_and_score",
    "find_initial_scores",
    "last_played_time",
    "parse_score_line",
    "read_file_score",
    "round_score",
    "scan_all_stats_folder",
    "scan_stats_folder_since",
    "scenario_from_filename",
]
