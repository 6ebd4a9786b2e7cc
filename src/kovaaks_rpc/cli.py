from __future__ import annotations

from pathlib import Path

import msgspec
import typer

from . import __version__
from .debug_log import close_debug_log, debug_log, init_debug_log
from .game.save_marker import current_scenario
from .paths import data_dir, ensure_data_dir
from .session.controller import TrackerController
from .session.events import (
    RpcStateChanged,
    ScenarioChanged,
    SyncComplete,
    SyncProgress,
    Toast,
    TrackerEvent,
)
from .stats.names import normalize_scenario_name

app = typer.Typer(add_completion=False)

_BASE_DIR_HELP = "base path for tracker files (default: per-user OS data dir; override with KOVAAKS_RPC_DATA_DIR)"


def _open(base_dir: Path, command: str, **context: object) -> TrackerController:
    root = ensure_data_dir(base_dir)
    init_debug_log(base_dir=root, command=command, version=__version__, context=context)
    controller = TrackerController.from_data_dir(root)
    settings = controller.state.get_settings()
    debug_log(
        "settings",
        username=settings.webapp_username,
        installation_path=settings.installation_path,
        online_only=bool(settings.online_only_scenarios),
        synced=bool(settings.online_scores_synced),
        last_sync_time=int(settings.last_sync_time),
        ledger_scenarios=len(controller.state.score_cache()),
        online_scenarios=len(controller.state.online_scores()),
    )
    return controller


def format_event(event: TrackerEvent) -> str | None:
    if isinstance(event, Toast):
        return event.message
    if isinstance(event, SyncProgress):
        return event.message
    if isinstance(event, SyncComplete):
        return event.message
    if isinstance(event, RpcStateChanged):
        return "tracking started" if event.running else "tracking stopped"
    if isinstance(event, ScenarioChanged):
        if not event.name:
            return "game closed"
        return f"{event.name}: highscore {event.highscore:.1f}, session best {event.session_best:.1f}"
    return None


def _echo_events(controller: TrackerController) -> list[TrackerEvent]:
    events = controller.events.drain()
    for event in events:
        line = format_event(event)
        if line:
            typer.echo(line)
    return events


@app.command("scan")
def cmd_scan(
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """Import every stats log into the local score ledger."""
    controller = _open(base_dir, "scan")
    try:
        count = controller.scan_local_stats()
        _echo_events(controller)
    finally:
        close_debug_log()
    if count is None:
        raise typer.Exit(code=1)


@app.command("sync")
def cmd_sync(
    username: str = typer.Option("", "--username", help="web app username (default: from settings)"),
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """Fetch online high scores and merge them into the ledger."""
    controller = _open(base_dir, "sync", username_override=bool(str(username).strip()))
    try:
        name = str(username).strip()
        if name:
            settings = msgspec.structs.replace(controller.state.get_settings(), webapp_username=name)
            controller.state.set_settings(settings)
        started = controller.sync_online_scores(wait=True)
        events = _echo_events(controller)
    finally:
        close_debug_log()
    if not started:
        raise typer.Exit(code=1)
    if not any(isinstance(event, SyncComplete) and event.success for event in events):
        raise typer.Exit(code=1)


@app.command("scores")
def cmd_scores(
    scenario: str = typer.Argument("", help="only show this scenario"),
    online: bool = typer.Option(False, "--online", help="show the last synced online scores instead"),
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """List recorded high scores."""
    controller = _open(base_dir, "scores", online=bool(online))
    try:
        if online:
            rows = [(name, score, "Online") for name, score in controller.online.load_local_scores().items()]
        else:
            rows = [
                (name, entry.highscore, entry.source.value)
                for name, entry in controller.state.ledger.get_all_scores().items()
            ]
    finally:
        close_debug_log()
    wanted = normalize_scenario_name(scenario.strip()) if scenario.strip() else ""
    if wanted:
        rows = [row for row in rows if row[0] == wanted]
    if not rows:
        typer.echo("no scores recorded", err=True)
        raise typer.Exit(code=1)
    for name, score, source in sorted(rows, key=lambda row: row[0].lower()):
        typer.echo(f"{score:>10.1f}  {source:<6}  {name}")


@app.command("scenario")
def cmd_scenario(
    local_app_data: Path | None = typer.Option(None, "--local-app-data", help="override %LOCALAPPDATA%"),
) -> None:
    """Print the scenario the game last recorded."""
    try:
        name = current_scenario(local_app_data)
    except OSError as exc:
        typer.echo(f"failed to read session save: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(normalize_scenario_name(name))


@app.command("reset-sync")
def cmd_reset_sync(
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """Forget that online scores were synced."""
    controller = _open(base_dir, "reset-sync")
    try:
        controller.reset_sync_flag()
        _echo_events(controller)
    finally:
        close_debug_log()


@app.command("settings")
def cmd_settings(
    username: str | None = typer.Option(None, "--username", help="web app username"),
    installation_path: Path | None = typer.Option(None, "--installation-path", help="FPSAimTrainer install dir"),
    online_only: bool | None = typer.Option(
        None,
        "--online-only/--all-scenarios",
        help="only track scenarios that exist online",
    ),
    open_manually: bool | None = typer.Option(None, "--manual-start/--auto-start", help="start tracking manually"),
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """Show settings, or change the given ones."""
    controller = _open(base_dir, "settings")
    try:
        changes: dict[str, object] = {}
        if username is not None:
            changes["webapp_username"] = str(username).strip()
        if installation_path is not None:
            changes["installation_path"] = str(installation_path)
        if online_only is not None:
            changes["online_only_scenarios"] = bool(online_only)
        if open_manually is not None:
            changes["open_manually"] = bool(open_manually)
        settings = controller.state.get_settings()
        if changes:
            settings = msgspec.structs.replace(settings, **changes)
            saved = controller.save_settings(settings)
            _echo_events(controller)
            if not saved:
                raise typer.Exit(code=1)
        typer.echo(msgspec.json.format(msgspec.json.encode(settings), indent=2).decode("utf-8"))
    finally:
        close_debug_log()


@app.command("run")
def cmd_run(
    base_dir: Path = typer.Option(data_dir(), "--base-dir", help=_BASE_DIR_HELP),
) -> None:
    """Track the game and broadcast Discord presence until interrupted."""
    controller = _open(base_dir, "run")
    try:
        if not controller.start_tracking():
            _echo_events(controller)
            raise typer.Exit(code=1)
        try:
            while True:
                event = controller.events.get(timeout=1.0)
                if event is None:
                    continue
                line = format_event(event)
                if line:
                    typer.echo(line)
        except KeyboardInterrupt:
            controller.stop_tracking(join_timeout=2.0)
            _echo_events(controller)
    finally:
        close_debug_log()


def main(argv: list[str] | None = None) -> None:
    app(prog_name="kovaaks-rpc", args=argv)


if __name__ == "__main__":
    main()
