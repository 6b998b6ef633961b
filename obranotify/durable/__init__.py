"""Durable workflow runtimes.

:class:`SQLiteWorkflowRuntime` persists runs and resumes them after
restarts; :class:`ImmediateRuntime` runs everything in-process.
"""

from obranotify.durable.base import (
    RunClaimLostError,
    StepFailedError,
    UnknownWorkflowError,
    WorkflowFn,
    WorkflowReplayError,
    WorkflowRuntime,
)
from obranotify.durable.immediate import ImmediateRuntime
from obranotify.durable.sqlite import SQLiteWorkflowRuntime

__all__ = [
    "ImmediateRuntime",
    "RunClaimLostError",
    "SQLiteWorkflowRuntime",
    "StepFailedError",
    "UnknownWorkflowError",
    "WorkflowFn",
    "WorkflowReplayError",
    "WorkflowRuntime",
]
