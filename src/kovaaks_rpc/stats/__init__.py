from __future__ import annotations

from .names import CHALLENGE_SUFFIX, UNKNOWN_SCENARIO, is_known_scenario, normalize_scenario_name
from .scanner import (
    IncrementalScan,
    find_fight_time_and_score,
    find_initial_scores,
    last_played_time,
    round_score,
    scan_all_stats_folder,
    scan_stats_folder_since,
)

__all__ = [
    "CHALLENGE_SUFFIX",
    "IncrementalScan",
    "UNKNOWN_SCENARIO",
    "find_fight_time_and_score",
    "find_initial_scores",
    "is_known_scenario",
    "last_played_time",
    "normalize_scenario_name",
    "round_score",
    "scan_all_stats_folder",
    "scan_stats_folder_since",
]
