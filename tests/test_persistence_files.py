from __future__ import annotations

from pathlib import Path

from kovaaks_rpc.persistence.files import (
    atomic_write_bytes,
    backup_corrupt_file,
    read_nonempty_bytes,
    write_json,
)


def test_atomic_write_replaces_through_sibling_tempfile(monkeypatch, tmp_path: Path) -> None:
    replaced: list[Path] = []
    original_replace = Path.replace

    def spy_replace(self: Path, target: Path) -> Path:
        replaced.append(self)
        return original_replace(self, target)

    monkeypatch.setattr(Path, "replace", spy_replace)

    dest = tmp_path / "nested" / "scores.json"
    atomic_write_bytes(dest, b"payload")

    assert dest.read_bytes() == b"payload"
    assert replaced
    assert replaced[0].parent == dest.parent
    assert replaced[0].name.startswith("scores.json.tmp.")
    assert sorted(p.name for p in dest.parent.iterdir()) == ["scores.json"]


def test_write_json_is_pretty_printed(tmp_path: Path) -> None:
    dest = tmp_path / "out.json"

    write_json(dest, {"a": 1})

    assert dest.read_text(encoding="utf-8") == '{\n  "a": 1\n}'


def test_read_nonempty_bytes_treats_blank_as_missing(tmp_path: Path) -> None:
    blank = tmp_path / "blank.json"
    blank.write_text("  \n", encoding="utf-8")

    assert read_nonempty_bytes(blank) is None
    assert read_nonempty_bytes(tmp_path / "missing.json") is None


def test_backup_corrupt_file_moves_file_aside(tmp_path: Path) -> None:
    path = tmp_path / "local_scores.json"
    path.write_text("garbage", encoding="utf-8")

    backup = backup_corrupt_file(path)

    assert backup == tmp_path / "local_scores.bak"
    assert backup.read_text(encoding="utf-8") == "garbage"
    assert backup_corrupt_file(path) is None
