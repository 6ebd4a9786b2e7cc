from __future__ import annotations

from collections.abc import Mapping
import datetime as dt
import os
from pathlib import Path
import sys
from threading import Lock

LOG_DIR_NAME = "logs"
LOG_PREFIX = "kovaaks-rpc-"
MAX_LOG_FILES = 20

_LOG_LOCK = Lock()
_LOG_PATH: Path | None = None


def _format_value(value: object) -> str:
    if isinstance(value, Path):
        value = value.as_posix()
    text = str(value)
    if not text:
        return '""'
    return text.replace("\n", "\\n")


def _format_fields(fields: Mapping[str, object]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))


def log_dir(base_dir: Path) -> Path:
    return base_dir / LOG_DIR_NAME


def prune_logs(directory: Path, *, keep: int = MAX_LOG_FILES) -> list[Path]:
    """Delete all but the newest `keep` tracker logs; names sort by start time."""
    try:
        logs = sorted(path for path in directory.glob(f"{LOG_PREFIX}*.log") if path.is_file())
    except OSError:
        return []
    removed: list[Path] = []
    for path in logs[: max(len(logs) - keep, 0)]:
        try:
            path.unlink()
        except OSError:
            continue
        removed.append(path)
    return removed


def debug_log_path() -> Path | None:
    with _LOG_LOCK:
        return _LOG_PATH


def init_debug_log(
    *,
    base_dir: Path,
    command: str,
    version: str = "",
    context: Mapping[str, object] | None = None,
) -> Path:
    """Start a fresh log for one tracker run under `<base_dir>/logs`.

    Older logs beyond MAX_LOG_FILES are removed first. `context` lands on the
    `init` line next to the command, version and platform.
    """
    directory = log_dir(base_dir)
    directory.mkdir(parents=True, exist_ok=True)
    pruned = prune_logs(directory, keep=MAX_LOG_FILES - 1)
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = directory / f"{LOG_PREFIX}{timestamp}-pid{os.getpid()}.log"

    with _LOG_LOCK:
        global _LOG_PATH
        _LOG_PATH = path

    fields: dict[str, object] = dict(context or {})
    fields.update(
        command=str(command).strip() or "unknown",
        version=str(version),
        platform=sys.platform,
        pid=int(os.getpid()),
        data_dir=base_dir,
        pruned=len(pruned),
    )
    debug_log("init", **fields)
    return path


def debug_log(event: str, **fields: object) -> None:
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
    payload = _format_fields(fields)
    line = f"{timestamp} event={str(event).strip()}"
    if payload:
        line += f" {payload}"
    line += "\n"

    with _LOG_LOCK:
        path = _LOG_PATH
        if path is None:
            return
        try:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        except OSError:
            return


def close_debug_log() -> None:
    debug_log("close")
    with _LOG_LOCK:
        global _LOG_PATH
        _LOG_PATH = None


__all__ = [
    "LOG_DIR_NAME",
    "MAX_LOG_FILES",
    "close_debug_log",
    "debug_log",
    "debug_log_path",
    "init_debug_log",
    "log_dir",
    "prune_logs",
]
