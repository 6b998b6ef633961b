"""``obranotify expand EVENT_TYPE`` — preview the effects of an event.

Nothing is scheduled or delivered.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from obranotify.cli.commands._options import load_config, parse_context
from obranotify.core.engine import NotificationEngine

console = Console()


def expand_cmd(
    event_type: str = typer.Argument(..., help="Event type to expand."),
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
        help="Path to the SQLite database holding the directory tables.",
    ),
) -> None:
    """Show the effects an event would produce."""
    ctx = parse_context(context)
    engine = NotificationEngine.from_config(load_config(db))
    try:
        effects = engine.expand(event_type, ctx)
    finally:
        engine.close()

    if not effects:
        console.print(f"[dim]No effects for {event_type}.[/dim]")
        return

    table = Table(title=f"Effects for {event_type}")
    table.add_column("#", justify="right")
    table.add_column("Recipient", style="cyan")
    table.add_column("Channel")
    table.add_column("Deliver at")
    table.add_column("Title / subject")
    for index, effect in enumerate(effects):
        deliver_at = effect.deliver_at.strftime("%Y-%m-%d %H:%M") if effect.deliver_at else "[green]now[/green]"
        table.add_row(
            str(index),
            effect.recipient_id,
            effect.channel.value,
            deliver_at,
            effect.subject or effect.title or "",
        )
    console.print(table)
