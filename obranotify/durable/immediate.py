"""In-process runtime that drives workflows to completion synchronously.

Suspensions are recorded but not waited on, which makes the runtime
useful for tests and for dry runs where only the order and content of
side effects matter.  Nothing is persisted.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from obranotify.core.hasher import content_digest
from obranotify.core.when import as_utc, utc_now
from obranotify.durable.base import UnknownWorkflowError, WorkflowFn
from obranotify.models.workflow import RunStatus, Step, Suspend, WorkflowRun

logger = logging.getLogger(__name__)


class ImmediateRuntime:
    """Synchronous :class:`~obranotify.durable.base.WorkflowRuntime`.

    Parameters
    ----------
    clock:
        Returns the current UTC instant; stamps the run records.
    raise_errors:
        When true, a workflow failure propagates out of :meth:`start`
        instead of only being recorded on the run.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utc_now,
        raise_errors: bool = False,
    ) -> None:
        self._clock = clock
        self._raise_errors = raise_errors
        self._workflows: dict[str, WorkflowFn] = {}
        self.runs: dict[str, WorkflowRun] = {}
        self.suspensions: list[tuple[str, datetime]] = []

    def register_workflow(self, name: str, fn: WorkflowFn) -> None:
        self._workflows[name] = fn

    def start(self, workflow: str, args: Mapping[str, Any]) -> str:
        fn = self._workflows.get(workflow)
        if fn is None:
            raise UnknownWorkflowError(f"No workflow registered as {workflow!r}")

        run_id = f"run-{uuid.uuid4().hex}"
        created = self._clock()
        steps = 0
        status = RunStatus.COMPLETED
        error: str | None = None
        try:
            steps = self._drive(run_id, fn(args))
        except Exception as exc:
            status = RunStatus.FAILED
            error = str(exc) or type(exc).__name__
            logger.error("Run %s failed: %s", run_id, error)
            if self._raise_errors:
                raise
        finally:
            self.runs[run_id] = WorkflowRun(
                run_id=run_id,
                workflow=workflow,
                args_digest=content_digest(dict(args)),
                status=status,
                error=error,
                created_at=created,
                updated_at=self._clock(),
                steps_completed=steps,
            )
        return run_id

    def _drive(self, run_id: str, generator: Any) -> int:
        steps = 0
        send_value: Any = None
        pending_error: BaseException | None = None
        while True:
            try:
                if pending_error is not None:
                    error, pending_error = pending_error, None
                    command = generator.throw(error)
                else:
                    command = generator.send(send_value)
            except StopIteration:
                return steps
            send_value = None

            if isinstance(command, Suspend):
                self.suspensions.append((run_id, as_utc(command.until)))
            elif isinstance(command, Step):
                try:
                    send_value = command.action()
                except Exception as exc:
                    pending_error = exc
                    continue
                steps += 1
            else:
                raise TypeError(f"Unsupported workflow command: {command!r}")
