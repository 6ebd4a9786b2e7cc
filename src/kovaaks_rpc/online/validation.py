from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import threading

import msgspec

from ..debug_log import debug_log
from ..paths import validation_cache_path
from ..persistence.files import backup_corrupt_file, read_nonempty_bytes, write_json


@dataclass(slots=True)
class ScenarioValidationCache:
    """Persisted scenario -> "available online" verdicts. Entries never expire."""

    path: Path
    _entries: dict[str, bool] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)

    @classmethod
    def load(cls, path: Path) -> ScenarioValidationCache:
        cache = cls(path=path)
        raw = read_nonempty_bytes(path)
        if raw is None:
            return cache
        try:
            cache._entries = msgspec.json.decode(raw, type=dict[str, bool])
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            debug_log("validation_cache_corrupt", path=str(path), error=str(exc))
            backup_corrupt_file(path)
        return cache

    @classmethod
    def in_dir(cls, base_dir: Path) -> ScenarioValidationCache:
        return cls.load(validation_cache_path(base_dir))

    def get(self, scenario_name: str) -> bool | None:
        with self._lock:
            return self._entries.get(scenario_name)

    def insert(self, scenario_name: str, allowed: bool) -> None:
        with self._lock:
            self._entries[scenario_name] = bool(allowed)
            snapshot = dict(self._entries)
        try:
            write_json(self.path, snapshot)
        except OSError as exc:
            debug_log("validation_cache_save_failed", error=str(exc))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["ScenarioValidationCache"]
