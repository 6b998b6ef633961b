"""Option parsing shared by the subcommands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from obranotify.config import NotifyConfig

console = Console()


def load_config(db_path: str | None) -> NotifyConfig:
    """Environment config, with ``--db`` taking precedence over it."""
    if db_path:
        return NotifyConfig(database_path=Path(db_path))
    return NotifyConfig()


def parse_context(raw: str) -> dict[str, Any]:
    """Parse the ``--context`` JSON object or exit with code 1."""
    try:
        value = json.loads(raw or "{}")
    except json.JSONDecodeError as exc:
        console.print(f"[bold red]Invalid --context JSON:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    if not isinstance(value, dict):
        console.print("[bold red]--context must be a JSON object.[/bold red]")
        raise typer.Exit(code=1)
    return value
