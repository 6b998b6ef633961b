"""``obranotify runs`` — inspect durable delivery runs.

Without ``--run`` lists recent runs; with it, shows that run's journal.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from obranotify.cli.commands._options import load_config
from obranotify.durable.sqlite import SQLiteWorkflowRuntime
from obranotify.models.workflow import RunStatus

console = Console()

_STATUS_STYLE = {
    RunStatus.PENDING: "dim",
    RunStatus.RUNNING: "cyan",
    RunStatus.SLEEPING: "yellow",
    RunStatus.COMPLETED: "green",
    RunStatus.FAILED: "red",
}


def runs_cmd(
    run_id: str = typer.Option(None, "--run", "-r", help="Show the journal of one run."),
    status: RunStatus = typer.Option(None, "--status", "-s", help="Filter by status."),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum runs to list."),
    db: str = typer.Option(None, "--db", "-d", help="Path to the SQLite database."),
) -> None:
    """List durable runs or show one run's journal."""
    cfg = load_config(db)
    if not cfg.database_path.exists():
        console.print(f"[bold red]Database not found:[/bold red] {cfg.database_path}")
        raise typer.Exit(code=1)
    runtime = SQLiteWorkflowRuntime(cfg.database_path)

    if run_id:
        run = runtime.get_run(run_id)
        if run is None:
            console.print(f"[bold red]Run not found:[/bold red] {run_id}")
            raise typer.Exit(code=1)
        table = Table(title=f"Journal of {run_id} ({run.status.value})")
        table.add_column("Seq", justify="right")
        table.add_column("Kind")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Outcome")
        table.add_column("Recorded")
        for entry in runtime.journal(run_id):
            outcome = "[green]ok[/green]" if entry.outcome == "ok" else f"[red]{entry.result}[/red]"
            table.add_row(
                str(entry.seq), entry.kind, entry.name, outcome, entry.recorded_at.strftime("%Y-%m-%d %H:%M:%S")
            )
        console.print(table)
        if run.error:
            console.print(f"[bold red]Error:[/bold red] {run.error}")
        return

    runs = runtime.list_runs(status=status, limit=limit)
    if not runs:
        console.print("[dim]No runs recorded.[/dim]")
        return

    table = Table(title="Delivery runs")
    table.add_column("Run ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Wake at")
    for run in runs:
        style = _STATUS_STYLE[run.status]
        table.add_row(
            run.run_id,
            f"[{style}]{run.status.value}[/{style}]",
            str(run.steps_completed),
            run.wake_at.strftime("%Y-%m-%d %H:%M") if run.wake_at else "",
        )
    console.print(table)
