from __future__ import annotations

from pathlib import Path

PLAYLIST_PROGRESS_PARTS = ("Saved", "SaveGames", "PlaylistInProgress.json")
SHARE_CODE_KEY = '"shareCode": "'


def playlist_share_code(installation_path: str | Path) -> str | None:
    """Share code of the playlist in progress, if the game wrote one."""
    if not installation_path:
        return None
    path = Path(installation_path).joinpath(*PLAYLIST_PROGRESS_PARTS)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    start = content.find(SHARE_CODE_KEY)
    if start < 0:
        return None
    start += len(SHARE_CODE_KEY)
    end = content.find('"', start)
    if end < 0:
        return None
    return content[start:end] or None


__all__ = ["playlist_share_code"]
