"""Durable-workflow commands and run records.

A workflow is a generator that yields commands; the runtime interprets
them.  :class:`Suspend` is the only suspension point: it asks the runtime
to park the run until an absolute instant.  :class:`Step` wraps one side
effect that the runtime executes once and journals.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict


class Suspend(BaseModel):
    """Park the run until *until* (an absolute, timezone-aware instant)."""

    model_config = ConfigDict(frozen=True)

    until: datetime


class Step(BaseModel):
    """Run *action* once; its return value is sent back into the workflow."""

    model_config = ConfigDict(frozen=True)

    name: str
    action: Callable[[], Any]


Command = Union[Suspend, Step]


class RunStatus(str, Enum):
    """Lifecycle of a durable run."""

    PENDING = "pending"
    RUNNING = "running"
    SLEEPING = "sleeping"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED})


class WorkflowRun(BaseModel):
    """Snapshot of a durable run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    workflow: str
    args_digest: str = ""
    status: RunStatus
    wake_at: datetime | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    steps_completed: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class JournalEntry(BaseModel):
    """One journaled command outcome of a durable run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    seq: int
    kind: str  # "step" | "suspend"
    name: str
    outcome: str  # "ok" | "error"
    result: Any = None
    recorded_at: datetime
