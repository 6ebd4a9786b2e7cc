from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from pypresence import Presence, PyPresenceException

from .debug_log import debug_log
from .errors import PresenceError
from .stats.names import is_known_scenario

CLIENT_ID = "1321990331083784202"
LARGE_IMAGE = "kovaak_image"
STEAM_APP_ID = 824270


class PresenceClient(Protocol):
    def is_connected(self) -> bool: ...

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def update_presence(
        self,
        scenario_name: str,
        start_time: int | None,
        highscore: float,
        session_highscore: float,
        installation_path: str,
        share_code: str | None,
    ) -> None: ...

    def clear_presence(self) -> None: ...


def encode_scenario_for_url(scenario_name: str) -> str:
    return scenario_name.replace(" ", "%20").replace("&", "%26")


def play_button(scenario_name: str, share_code: str | None) -> dict[str, str]:
    if share_code:
        return {
            "label": "Play Playlist",
            "url": f"steam://run/{STEAM_APP_ID}/?action=jump-to-playlist;sharecode={share_code}",
        }
    return {
        "label": "Play Scenario",
        "url": f"steam://run/{STEAM_APP_ID}/?action=jump-to-scenario;name={encode_scenario_for_url(scenario_name)}",
    }


def build_activity(
    scenario_name: str,
    start_time: int | None,
    highscore: float,
    session_highscore: float,
    share_code: str | None,
) -> dict[str, Any]:
    if session_highscore > 0.0:
        session_text = f"Session Best: {session_highscore:.1f}"
    else:
        session_text = "No session plays yet"
    activity: dict[str, Any] = {
        "details": f"Playing: {scenario_name}",
        "state": f"Highscore: {highscore:.1f}",
        "large_image": LARGE_IMAGE,
        "large_text": session_text,
        "small_text": session_text,
        "buttons": [play_button(scenario_name, share_code)],
    }
    if start_time is not None:
        activity["start"] = int(start_time)
    return activity


@dataclass(slots=True)
class DiscordPresence:
    """Discord Rich Presence over the local IPC pipe."""

    client_id: str = CLIENT_ID
    factory: Callable[[str], Any] = Presence
    _rpc: Any = field(default=None, init=False, repr=False)

    def is_connected(self) -> bool:
        return self._rpc is not None

    def connect(self) -> None:
        if self._rpc is not None:
            return
        rpc = self.factory(self.client_id)
        try:
            rpc.connect()
        except (PyPresenceException, OSError) as exc:
            raise PresenceError(f"failed to connect Discord RPC: {exc}") from exc
        self._rpc = rpc
        debug_log("presence_connected")

    def disconnect(self) -> None:
        rpc = self._rpc
        if rpc is None:
            return
        self._rpc = None
        try:
            rpc.close()
        except (PyPresenceException, OSError) as exc:
            raise PresenceError(f"failed to disconnect Discord RPC: {exc}") from exc
        debug_log("presence_disconnected")

    def update_presence(
        self,
        scenario_name: str,
        start_time: int | None,
        highscore: float,
        session_highscore: float,
        installation_path: str,
        share_code: str | None,
    ) -> None:
        if self._rpc is None or not is_known_scenario(scenario_name):
            return
        activity = build_activity(scenario_name, start_time, highscore, session_highscore, share_code)
        try:
            self._rpc.update(**activity)
        except (PyPresenceException, OSError) as exc:
            raise PresenceError(f"failed to update Discord RPC activity: {exc}") from exc

    def clear_presence(self) -> None:
        if self._rpc is None:
            return
        try:
            self._rpc.clear()
        except (PyPresenceException, OSError) as exc:
            raise PresenceError(f"failed to clear Discord RPC activity: {exc}") from exc


__all__ = [
    "CLIENT_ID",
    "DiscordPresence",
    "PresenceClient",
    "build_activity",
    "play_button",
]
