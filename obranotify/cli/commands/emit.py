"""``obranotify emit EVENT_TYPE`` — emit a domain event.

Expands the event against the built-in rules and starts a durable
delivery run on the configured database.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from obranotify.cli.commands._options import load_config, parse_context
from obranotify.core.engine import NotificationEngine

console = Console()


def emit_cmd(
    event_type: str = typer.Argument(..., help="Event type, e.g. obra.completed."),
    context: str = typer.Option(
        "{}",
        "--context",
        "-c",
        help="Event context as a JSON object.",
    ),
    db: str = typer.Option(
        None,
        "--db",
        "-d",
        help="Path to the SQLite database (defaults to OBRANOTIFY_DATABASE_PATH).",
    ),
) -> None:
    """Emit an event and start its delivery run."""
    ctx = parse_context(context)
    engine = NotificationEngine.from_config(load_config(db))
    try:
        run_id = engine.emit(event_type, ctx)
        run = engine.runtime.get_run(run_id) if run_id else None
    finally:
        engine.close()

    if run_id is None:
        console.print(f"[yellow]No effects for[/yellow] {event_type}; nothing scheduled.")
        return

    status = run.status.value if run else "unknown"
    lines = [
        "[bold green]Event emitted[/bold green]",
        "",
        f"  Event:   [cyan]{event_type}[/cyan]",
        f"  Run ID:  [bold]{run_id}[/bold]",
        f"  Status:  {status}",
    ]
    if run and run.wake_at:
        lines.append(f"  Wakes:   {run.wake_at.isoformat()}")
    console.print(Panel("\n".join(lines), title="obranotify", border_style="green"))
