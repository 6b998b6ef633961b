"""Main Typer application — imports and registers all CLI commands.

Entry point: ``obranotify`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from obranotify.cli.commands.emit import emit_cmd
from obranotify.cli.commands.expand import expand_cmd
from obranotify.cli.commands.runs import runs_cmd
from obranotify.cli.commands.worker import worker_cmd
from obranotify.config import config

app = typer.Typer(
    name="obranotify",
    help="obranotify: event-driven notifications with durable deferred delivery.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (defaults to OBRANOTIFY_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging for every subcommand."""
    level = (log_level or config.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="emit", help="Emit an event and start its delivery run.")(emit_cmd)
app.command(name="expand", help="Preview the effects of an event.")(expand_cmd)
app.command(name="runs", help="List durable runs or show a run's journal.")(runs_cmd)
app.command(name="worker", help="Resume due delivery runs.")(worker_cmd)


@app.command(name="rules", help="List the built-in rules.")
def rules_cmd() -> None:
    """List every registered event type with its effects."""
    from obranotify.rules import build_default_registry

    console = Console()
    registry = build_default_registry()

    table = Table(title="Notification rules")
    table.add_column("Event type", style="cyan", no_wrap=True)
    table.add_column("Channels")
    table.add_column("Description")
    for event_type in registry.event_types():
        rule = registry.lookup(event_type)
        channels = ", ".join(effect.channel.value for effect in rule.effects)
        table.add_row(event_type, channels, rule.description)
    console.print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
