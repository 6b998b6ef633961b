"""Runtime protocol and errors shared by the durable-workflow backends."""

from __future__ import annotations

from collections.abc import Callable, Generator, Mapping
from typing import Any, Protocol, runtime_checkable

from obranotify.models.workflow import Command

WorkflowFn = Callable[[Mapping[str, Any]], Generator[Command, Any, Any]]


class UnknownWorkflowError(RuntimeError):
    """Raised when starting or resuming a run whose workflow is not registered."""


class StepFailedError(RuntimeError):
    """Re-raised into a replayed workflow for a step journaled as failed."""


class WorkflowReplayError(RuntimeError):
    """Raised when a replayed workflow diverges from its journal."""


class RunClaimLostError(RuntimeError):
    """Raised when a run being advanced is no longer held by this runtime."""


@runtime_checkable
class WorkflowRuntime(Protocol):
    """The durable substrate the engine starts delivery runs on.

    Guarantees consumed by the workflows: at-least-once resumption after a
    requested :class:`~obranotify.models.workflow.Suspend` instant, and
    exactly-once logical execution of each step between suspensions.
    """

    def register_workflow(self, name: str, fn: WorkflowFn) -> None:
        ...

    def start(self, workflow: str, args: Mapping[str, Any]) -> str:
        """Enqueue a new durable run and return its run id."""
        ...
