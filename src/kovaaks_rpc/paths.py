from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "KovaaksDiscordRPC"

SETTINGS_NAME = "settings.json"
LOCAL_SCORES_NAME = "local_scores.json"
VALIDATION_CACHE_NAME = "scenario_validation_cache.json"
ONLINE_SNAPSHOT_NAME = "online_highscores.json"
ONLINE_CACHE_DIR_NAME = "cache"
RAW_SCORES_DIR_NAME = "raw_scores"


def _app_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def default_data_dir() -> Path:
    return Path(_app_dirs().user_data_path)


def data_dir() -> Path:
    override = os.environ.get("KOVAAKS_RPC_DATA_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return default_data_dir().resolve()


def ensure_data_dir(base_dir: Path | None = None) -> Path:
    root = data_dir() if base_dir is None else Path(base_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def settings_path(base_dir: Path) -> Path:
    return base_dir / SETTINGS_NAME


def local_scores_path(base_dir: Path) -> Path:
    return base_dir / LOCAL_SCORES_NAME


def validation_cache_path(base_dir: Path) -> Path:
    return base_dir / VALIDATION_CACHE_NAME


def online_snapshot_path(base_dir: Path) -> Path:
    return base_dir / ONLINE_SNAPSHOT_NAME


def online_cache_dir(base_dir: Path) -> Path:
    return base_dir / ONLINE_CACHE_DIR_NAME


def raw_scores_dir(base_dir: Path) -> Path:
    return base_dir / RAW_SCORES_DIR_NAME


__all__ = [
    "APP_NAME",
    "data_dir",
    "default_data_dir",
    "ensure_data_dir",
    "local_scores_path",
    "online_cache_dir",
    "online_snapshot_path",
    "raw_scores_dir",
    "settings_path",
    "validation_cache_path",
]
