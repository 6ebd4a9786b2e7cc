from __future__ import annotations

from pathlib import Path
import sys

import psutil

from ..debug_log import debug_log

GAME_PROCESS_TOKEN = "fpsaimtrainer"
SELF_PROCESS_TOKENS = ("discord", "rpc")
AUTOSTART_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"
AUTOSTART_VALUE = "KovaaksDiscordRPC"


def is_game_process_name(name: str) -> bool:
    lowered = str(name).lower()
    if GAME_PROCESS_TOKEN not in lowered:
        return False
    return not any(token in lowered for token in SELF_PROCESS_TOKENS)


def is_kovaaks_running() -> bool:
    for proc in psutil.process_iter(attrs=["name"]):
        name = proc.info.get("name") or ""
        if is_game_process_name(name):
            return True
    return False


def autostart_command() -> str:
    exe = Path(sys.argv[0]).resolve()
    return f'"{exe}" run'


def get_autostart_enabled() -> bool:
    if sys.platform != "win32":
        return False
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, AUTOSTART_KEY) as key:
            winreg.QueryValueEx(key, AUTOSTART_VALUE)
    except OSError:
        return False
    return True


def set_autostart_enabled(enable: bool) -> None:
    if sys.platform != "win32":
        return
    import winreg

    with winreg.OpenKey(winreg.HKEY_CURRENT_USER, AUTOSTART_KEY, 0, winreg.KEY_SET_VALUE) as key:
        if enable:
            winreg.SetValueEx(key, AUTOSTART_VALUE, 0, winreg.REG_SZ, autostart_command())
        else:
            try:
                winreg.DeleteValue(key, AUTOSTART_VALUE)
            except FileNotFoundError:
                pass
    debug_log("autostart", enabled=bool(enable))


__all__ = [
    "get_autostart_enabled",
    "is_game_process_name",
    "is_kovaaks_running",
    "set_autostart_enabled",
]
