"""obranotify CLI — Typer-based command-line interface.

Provides the ``obranotify`` command with subcommands for emitting events,
previewing expansions, listing rules, inspecting durable runs and running
the delivery worker.

All output uses Rich for formatted terminal display.
"""
