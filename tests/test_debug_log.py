from __future__ import annotations

from pathlib import Path

from kovaaks_rpc.debug_log import (
    MAX_LOG_FILES,
    close_debug_log,
    debug_log,
    debug_log_path,
    init_debug_log,
    prune_logs,
)


def test_debug_log_writes_events_to_file(tmp_path: Path) -> None:
    close_debug_log()
    log_path = init_debug_log(base_dir=tmp_path, command="run", version="1.2.3", context={"online": True})
    debug_log("scenario_changed", scenario="Gridshot", highscore=123.5, note="two\nlines", share_code="")

    assert debug_log_path() == log_path
    assert log_path.parent == tmp_path / "logs"
    assert log_path.name.startswith("kovaaks-rpc-")
    text = log_path.read_text(encoding="utf-8")
    init_line = text.splitlines()[0]
    assert "event=init" in init_line
    assert "command=run" in init_line
    assert "version=1.2.3" in init_line
    assert "online=True" in init_line
    assert f"data_dir={tmp_path.as_posix()}" in init_line
    assert 'event=scenario_changed highscore=123.5 note=two\\nlines scenario=Gridshot share_code=""' in text

    close_debug_log()
    assert debug_log_path() is None
    assert log_path.read_text(encoding="utf-8").splitlines()[-1].endswith("event=close")


def test_init_context_cannot_override_run_fields(tmp_path: Path) -> None:
    close_debug_log()
    log_path = init_debug_log(base_dir=tmp_path, command="scan", context={"command": "spoofed"})
    close_debug_log()

    init_line = log_path.read_text(encoding="utf-8").splitlines()[0]
    assert "command=scan" in init_line
    assert "spoofed" not in init_line


def test_debug_log_is_noop_until_initialised(tmp_path: Path) -> None:
    close_debug_log()

    debug_log("ignored", value=1)

    assert debug_log_path() is None
    assert not (tmp_path / "logs").exists()


def test_prune_logs_keeps_newest(tmp_path: Path) -> None:
    names = [f"kovaaks-rpc-2024010{i}T000000.000000Z-pid1.log" for i in range(1, 6)]
    for name in names:
        (tmp_path / name).write_text("", encoding="utf-8")
    (tmp_path / "notes.log").write_text("", encoding="utf-8")

    removed = prune_logs(tmp_path, keep=2)

    assert [path.name for path in removed] == names[:3]
    assert sorted(path.name for path in tmp_path.iterdir()) == [*names[3:], "notes.log"]


def test_init_bounds_the_number_of_logs(tmp_path: Path) -> None:
    logs = tmp_path / "logs"
    logs.mkdir()
    for i in range(MAX_LOG_FILES + 3):
        (logs / f"kovaaks-rpc-20240101T0000{i:02d}.000000Z-pid1.log").write_text("", encoding="utf-8")

    close_debug_log()
    log_path = init_debug_log(base_dir=tmp_path, command="scan")
    close_debug_log()

    remaining = sorted(path.name for path in logs.iterdir())
    assert len(remaining) == MAX_LOG_FILES
    assert remaining[-1] == log_path.name
