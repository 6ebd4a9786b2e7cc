from __future__ import annotations

from pathlib import Path
import sys

import msgspec

from ..debug_log import debug_log
from .files import backup_corrupt_file, read_nonempty_bytes, write_json

DEFAULT_STEAM_PATH = r"C:\Program Files (x86)\Steam\steam.exe"
STEAM_REGISTRY_KEY = r"SOFTWARE\WOW6432Node\Valve\Steam"
KOVAAKS_STEAM_SUBDIR = ("steamapps", "common", "FPSAimTrainer", "FPSAimTrainer")


class Settings(msgspec.Struct):
    installation_path: str = ""
    steam_path: str = DEFAULT_STEAM_PATH
    open_manually: bool = False
    start_with_windows: bool = False
    webapp_username: str = ""
    show_online_scores: bool = False
    start_in_tray: bool = False
    online_only_scenarios: bool = False
    online_scores_synced: bool = False
    last_sync_time: int = 0


def load_settings(path: Path) -> Settings:
    raw = read_nonempty_bytes(path)
    if raw is None:
        return Settings()
    try:
        return msgspec.json.decode(raw, type=Settings)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        debug_log("settings_corrupt", path=str(path), error=str(exc))
        backup_corrupt_file(path)
        return Settings()


def save_settings(settings: Settings, path: Path) -> None:
    write_json(path, settings)


def stats_directory(settings: Settings) -> Path:
    return Path(settings.installation_path) / "stats"


def steam_install_from_registry() -> str | None:
    if sys.platform != "win32":
        return None
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, STEAM_REGISTRY_KEY) as key:
            install_path, _kind = winreg.QueryValueEx(key, "InstallPath")
    except OSError:
        return None
    candidate = Path(str(install_path)).joinpath(*KOVAAKS_STEAM_SUBDIR)
    if (candidate / "stats").exists():
        return str(candidate)
    return None


def initialize_installation_path(settings: Settings, path: Path) -> Settings:
    if settings.installation_path:
        return settings
    detected = steam_install_from_registry()
    if detected is None:
        return settings
    settings.installation_path = detected
    save_settings(settings, path)
    debug_log("installation_detected", path=str(detected))
    return settings


__all__ = [
    "DEFAULT_STEAM_PATH",
    "Settings",
    "initialize_installation_path",
    "load_settings",
    "save_settings",
    "stats_directory",
    "steam_install_from_registry",
]
