from __future__ import annotations

import os
from pathlib import Path
import shutil
import tempfile

from ..stats.names import UNKNOWN_SCENARIO

SCENARIO_MARKERS = (b"FullScenarioPath", b"LastEditProfile")
SESSION_SAVE_PARTS = ("FPSAimTrainer", "Saved", "SaveGames", "session.sav")


def _printable(byte: int) -> bool:
    return 32 <= byte <= 126


def extract_scenario_name(data: bytes) -> str:
    """Recover the scenario name stored just before a known property marker.

    The save file is an Unreal property blob: the name is the run of printable
    ASCII that precedes the marker, separated from it by length/type bytes.
    """
    marker_pos = -1
    for marker in SCENARIO_MARKERS:
        marker_pos = data.find(marker)
        if marker_pos >= 0:
            break
    if marker_pos < 0:
        return UNKNOWN_SCENARIO

    end = marker_pos
    while end > 0 and not _printable(data[end - 1]):
        end -= 1
    # Byte 0 is never part of the name.
    start = end
    while start > 1 and _printable(data[start - 1]):
        start -= 1
    if start >= end:
        return UNKNOWN_SCENARIO
    return data[start:end].decode("utf-8", errors="replace")


def read_scenario_from_file(path: Path) -> str:
    return extract_scenario_name(Path(path).read_bytes())


def session_save_path(local_app_data: Path | None = None) -> Path | None:
    if local_app_data is None:
        raw = os.environ.get("LOCALAPPDATA")
        if not raw:
            return None
        local_app_data = Path(raw)
    return Path(local_app_data).joinpath(*SESSION_SAVE_PARTS)


def current_scenario(local_app_data: Path | None = None) -> str:
    """Scenario the game last recorded in its session save.

    The game keeps the save open, so a temporary copy is parsed instead.
    Raises OSError when the copy cannot be made.
    """
    source = session_save_path(local_app_data)
    if source is None or not source.exists():
        return UNKNOWN_SCENARIO
    with tempfile.TemporaryDirectory(prefix="kovaaks-rpc-") as tmp_dir:
        copy_path = Path(tmp_dir) / "session_copy.sav"
        shutil.copyfile(source, copy_path)
        return read_scenario_from_file(copy_path)


__all__ = [
    "SCENARIO_MARKERS",
    "current_scenario",
    "extract_scenario_name",
    "read_scenario_from_file",
    "session_save_path",
]
