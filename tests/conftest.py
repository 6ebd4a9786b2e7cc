from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from kovaaks_rpc.debug_log import close_debug_log
from kovaaks_rpc.errors import PresenceError


@pytest.fixture(autouse=True)
def _detach_debug_log() -> Iterator[None]:
    yield
    close_debug_log()


@pytest.fixture
def stats_dir(tmp_path: Path) -> Path:
    path = tmp_path / "FPSAimTrainer" / "stats"
    path.mkdir(parents=True)
    return path


def write_stats_log(stats_dir: Path, filename: str, *scores: float) -> Path:
    lines = ["Kill #,Timestamp,Bot,Weapon", "1,12:00:00.000,Target,Pistol", ""]
    for score in scores:
        lines.append(f"Score:,{score}")
    lines.append("Game Version:,3.6.2")
    path = stats_dir / filename
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class FakePresence:
    def __init__(self) -> None:
        self.connected = False
        self.fail_connect = False
        self.fail_update = False
        self.updates: list[tuple[Any, ...]] = []
        self.cleared = 0

    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        if self.fail_connect:
            raise PresenceError("Discord not running")
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False

    def update_presence(self, *args: Any) -> None:
        if self.fail_update:
            raise PresenceError("pipe closed")
        self.updates.append(args)

    def clear_presence(self) -> None:
        self.cleared += 1
