"""``obranotify worker`` — resume due delivery runs.

Recovers runs interrupted mid-advance, then polls for pending runs and
sleeping runs whose wake-up instant has passed.
"""

from __future__ import annotations

import typer
from rich.console import Console

from obranotify.cli.commands._options import load_config
from obranotify.core.engine import NotificationEngine

console = Console()


def worker_cmd(
    poll_interval: float = typer.Option(
        None,
        "--poll",
        "-p",
        help="Seconds between polls (defaults to OBRANOTIFY_WORKER_POLL_INTERVAL_SECONDS).",
    ),
    max_ticks: int = typer.Option(
        None,
        "--max-ticks",
        help="Stop after this many polls (runs forever when omitted).",
    ),
    db: str = typer.Option(None, "--db", "-d", help="Path to the SQLite database."),
) -> None:
    """Run the delivery worker."""
    cfg = load_config(db)
    engine = NotificationEngine.from_config(cfg)
    interval = poll_interval if poll_interval is not None else cfg.worker_poll_interval_seconds

    console.print(
        f"[dim]Worker on {cfg.database_path}, polling every {interval}s. Press Ctrl+C to exit.[/dim]"
    )
    try:
        advanced = engine.runtime.run_worker(interval, max_ticks=max_ticks)
    except KeyboardInterrupt:
        console.print("[yellow]Worker stopped.[/yellow]")
        return
    finally:
        engine.close()
    console.print(f"[green]Worker finished:[/green] {advanced} run advance(s).")
