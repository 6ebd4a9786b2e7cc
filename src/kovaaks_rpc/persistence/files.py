from __future__ import annotations

import os
from pathlib import Path

import msgspec

from ..debug_log import debug_log

BACKUP_SUFFIX = ".bak"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + f".tmp.{os.getpid()}")
    try:
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
    finally:
        tmp_path.unlink(missing_ok=True)


def encode_pretty_json(value: object) -> bytes:
    return msgspec.json.format(msgspec.json.encode(value), indent=2)


def write_json(path: Path, value: object) -> None:
    atomic_write_bytes(path, encode_pretty_json(value))


def read_nonempty_bytes(path: Path) -> bytes | None:
    """Return the file contents, or None when missing, unreadable or blank."""
    try:
        raw = path.read_bytes()
    except OSError:
        return None
    if not raw.strip():
        return None
    return raw


def backup_corrupt_file(path: Path) -> Path | None:
    backup = path.with_suffix(BACKUP_SUFFIX)
    try:
        path.replace(backup)
    except OSError as exc:
        debug_log("corrupt_backup_failed", path=str(path), error=str(exc))
        return None
    debug_log("corrupt_backup", path=str(path), backup=str(backup))
    return backup


__all__ = [
    "BACKUP_SUFFIX",
    "atomic_write_bytes",
    "backup_corrupt_file",
    "encode_pretty_json",
    "read_nonempty_bytes",
    "write_json",
]
