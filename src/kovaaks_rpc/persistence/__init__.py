from __future__ import annotations

from .ledger import LedgerFile, LocalScoreLedger, ScenarioScore, ScoreSource
from .settings import Settings, load_settings, save_settings, stats_directory

__all__ = [
    "LedgerFile",
    "LocalScoreLedger",
    "ScenarioScore",
    "ScoreSource",
    "Settings",
    "load_settings",
    "save_settings",
    "stats_directory",
]
