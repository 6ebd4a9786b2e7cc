from __future__ import annotations

from .playlist import playlist_share_code
from .process import get_autostart_enabled, is_kovaaks_running, set_autostart_enabled
from .save_marker import current_scenario, extract_scenario_name

__all__ = [
    "current_scenario",
    "extract_scenario_name",
    "get_autostart_enabled",
    "is_kovaaks_running",
    "playlist_share_code",
    "set_autostart_enabled",
]
