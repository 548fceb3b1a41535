"""
StudioDesk CLI

Click-based command-line interface for StudioDesk.
Runs the API server and administers protocols and practice sessions.
"""

import json
import sys
from pathlib import Path

import click

from studiodesk import __version__
from studiodesk.errors import ConfigError, StudioDeskError
from studiodesk.logging import EXIT_CONFIG_ERROR, EXIT_RUNTIME_ERROR, get_logger, init_cli_logging

logger = get_logger(__name__)


def get_service_context():
    """Create a ServiceContext for CLI operations."""
    from studiodesk.config import load_config
    from studiodesk.services.base import ServiceContext

    try:
        config = load_config()
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    return ServiceContext(config=config)


def get_engine():
    """Build a ProgressEngine over the configured data directory."""
    from studiodesk.db.database import Database
    from studiodesk.services.progress import ProgressEngine

    context = get_service_context()
    return ProgressEngine(context, Database(context.config.data_dir))


def _emit(ctx, data, text: str) -> None:
    if ctx.obj.get("JSON"):
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        click.echo(text)


def _fail(message: str) -> None:
    logger.debug("cli_command_failed", extra={"error": message})
    click.echo(f"Error: {message}", err=True)
    sys.exit(EXIT_RUNTIME_ERROR)


def _protocol_line(p) -> str:
    return f"{p.id:>4}  {p.status:<12} {p.progress * 100:5.1f}%  {p.name}"


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx, verbose, json_output):
    """StudioDesk - tasks and practice tracking."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON"] = json_output

    if verbose:
        init_cli_logging(level="DEBUG")


@cli.command()
def version():
    """Show version information."""
    click.echo(f"StudioDesk v{__version__}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host, port, reload):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("studiodesk.api.app:app", host=host, port=port, reload=reload)


# =============================================================================
# Protocol Commands
# =============================================================================

@cli.group()
def protocol():
    """Protocol management commands."""
    pass


@protocol.command("list")
@click.pass_context
def protocol_list(ctx):
    """List all protocols."""
    protocols = get_engine().list_protocols()
    if not protocols and not ctx.obj.get("JSON"):
        click.echo("No protocols found.")
        return
    _emit(ctx, [p.to_dict() for p in protocols], "\n".join(_protocol_line(p) for p in protocols))


@protocol.command("summary")
@click.pass_context
def protocol_summary(ctx):
    """Show counts per status and average progress."""
    summary = get_engine().summary()
    text = (
        f"Total: {summary.total}  not started: {summary.not_started}  "
        f"in progress: {summary.in_progress}  completed: {summary.completed}\n"
        f"Average progress: {summary.average_progress * 100:.1f}%"
    )
    _emit(ctx, summary.to_dict(), text)


@protocol.command("show")
@click.argument("protocol_id", type=int)
@click.pass_context
def protocol_show(ctx, protocol_id):
    """Show one protocol."""
    try:
        p = get_engine().get_protocol(protocol_id)
    except StudioDeskError as exc:
        _fail(str(exc))
    text = "\n".join(
        [
            _protocol_line(p),
            f"      last session: {p.last_session or '-'}",
            f"      design: {p.design_status}  active: {'yes' if p.is_active_for_practice else 'no'}",
            f"      next focus: {p.next_focus or '-'}",
        ]
    )
    _emit(ctx, p.to_dict(), text)


@protocol.command("create")
@click.argument("name")
@click.option("--notes", default="", help="Free-text notes")
@click.option("--next-focus", default="", help="What to focus on next")
@click.option(
    "--design-status",
    type=click.Choice(["draft", "in_progress", "approved"]),
    default="draft",
    show_default=True,
)
@click.pass_context
def protocol_create(ctx, name, notes, next_focus, design_status):
    """Create a new protocol."""
    try:
        p = get_engine().create_protocol(name, notes=notes, next_focus=next_focus, design_status=design_status)
    except StudioDeskError as exc:
        _fail(str(exc))
    _emit(ctx, p.to_dict(), f"Created protocol {p.id}: {p.name}")


@protocol.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def protocol_import(ctx, path):
    """Seed protocols from a JSON array file."""
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        _fail(f"Cannot read {path}: {exc}")
    if not isinstance(records, list):
        _fail(f"{path} must contain a JSON array")
    try:
        protocols = get_engine().import_protocols(records)
    except StudioDeskError as exc:
        _fail(str(exc))
    _emit(ctx, [p.to_dict() for p in protocols], f"Imported {len(records)} protocol(s); {len(protocols)} total.")


@protocol.command("status")
@click.argument("protocol_id", type=int)
@click.option("--status", "status", type=click.Choice(["not_started", "in_progress", "completed"]))
@click.option("--progress", type=float, help="Progress between 0 and 1")
@click.option("--notes")
@click.option("--next-focus")
@click.pass_context
def protocol_status(ctx, protocol_id, status, progress, notes, next_focus):
    """Manually set status, progress or notes."""
    patch = {"status": status, "progress": progress, "notes": notes, "next_focus": next_focus}
    try:
        p = get_engine().update_status(protocol_id, patch)
    except StudioDeskError as exc:
        _fail(str(exc))
    _emit(ctx, p.to_dict(), _protocol_line(p))


# =============================================================================
# Session Commands
# =============================================================================

@cli.group()
def session():
    """Practice session commands."""
    pass


@session.command("list")
@click.argument("protocol_id", type=int)
@click.pass_context
def session_list(ctx, protocol_id):
    """List sessions of a protocol, newest first."""
    sessions = get_engine().list_sessions(protocol_id)
    lines = [
        f"{s.date}  {s.subjective_progress_score if s.is_scored else '-'}  "
        f"{s.duration_minutes:>3}m  {s.piece_title}" + (f" ({s.composer})" if s.composer else "")
        for s in sessions
    ]
    _emit(ctx, [s.to_dict() for s in sessions], "\n".join(lines) or "No sessions recorded.")


@session.command("log")
@click.argument("protocol_id", type=int)
@click.option("--date", "session_date", required=True, help="YYYY-MM-DD")
@click.option("--piece", "piece_title", required=True)
@click.option("--composer", required=True)
@click.option("--score", type=click.IntRange(1, 5), required=True, help="Subjective progress 1-5")
@click.option("--minutes", "duration_minutes", type=click.IntRange(min=0), default=0)
@click.option("--notes", default="")
@click.option("--next-time", "next_time_hint", default="")
@click.pass_context
def session_log(ctx, protocol_id, session_date, piece_title, composer, score, duration_minutes, notes, next_time_hint):
    """Record a scored session."""
    data = {
        "date": session_date,
        "piece_title": piece_title,
        "composer": composer,
        "subjective_progress_score": score,
        "duration_minutes": duration_minutes,
        "notes": notes,
        "next_time_hint": next_time_hint,
    }
    try:
        s, p = get_engine().record_session(protocol_id, data)
    except StudioDeskError as exc:
        _fail(str(exc))
    _emit(ctx, {"session": s.to_dict(), "protocol": p.to_dict()}, f"Recorded session {s.id}\n{_protocol_line(p)}")


@session.command("basic")
@click.argument("protocol_id", type=int)
@click.option("--date", "session_date", required=True, help="YYYY-MM-DD")
@click.option("--piece", "piece_title", required=True)
@click.option(
    "--status-after",
    "status_after_session",
    type=click.Choice(["not_started", "in_progress", "completed"]),
    default="in_progress",
    show_default=True,
)
@click.option("--minutes", "duration_minutes", type=click.IntRange(min=0), default=30, show_default=True)
@click.option("--notes", default="")
@click.pass_context
def session_basic(ctx, protocol_id, session_date, piece_title, status_after_session, duration_minutes, notes):
    """Record an unscored session and set the resulting status."""
    data = {
        "date": session_date,
        "piece_title": piece_title,
        "status_after_session": status_after_session,
        "duration_minutes": duration_minutes,
        "notes": notes,
    }
    try:
        s, p = get_engine().record_basic_session(protocol_id, data)
    except StudioDeskError as exc:
        _fail(str(exc))
    _emit(ctx, {"session": s.to_dict(), "protocol": p.to_dict()}, f"Recorded session {s.id}\n{_protocol_line(p)}")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
