"""SQLite-backed durable workflow runtime.

Runs survive process restarts: every run row stores its workflow name and
serialized arguments, and every executed command is appended to a per-run
journal.  Advancing a run replays its workflow generator from the start,
feeding journaled results back instead of re-executing completed steps,
until it reaches new work.

Design:
- A run is ``pending`` until first advanced, ``running`` while a process
  holds it, ``sleeping`` while parked on a future ``Suspend`` (``wake_at``
  set), then ``completed`` or ``failed``.
- Claiming a run is a conditional ``UPDATE`` that stamps the runtime's
  owner token; two runtimes never advance the same run at once.
- The claim is a lease renewed by every journal write.  :meth:`recover`
  only requeues ``running`` runs whose lease has expired.
- Every write made while advancing is conditional on still owning the
  run.  A runtime that lost its claim stops advancing and leaves the run
  to the new owner.
- ``wake_at`` is stored as an absolute UTC instant, so resumption timing
  does not depend on how long the process was down.
- A step that crashed the process, or outlived the lease, before being
  journaled runs again on recovery (at-least-once per step).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable, Generator, Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from obranotify.core.db import connect, from_db_time, prepare_path, to_db_time
from obranotify.core.hasher import canonical_json, content_digest
from obranotify.core.when import as_utc, utc_now
from obranotify.durable.base import (
    RunClaimLostError,
    StepFailedError,
    UnknownWorkflowError,
    WorkflowFn,
    WorkflowReplayError,
)
from obranotify.models.workflow import (
    Command,
    JournalEntry,
    RunStatus,
    Step,
    Suspend,
    WorkflowRun,
)

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 300.0


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_RUNS = """
CREATE TABLE IF NOT EXISTS workflow_runs (
    run_id       TEXT PRIMARY KEY,
    workflow     TEXT NOT NULL,
    args_json    TEXT NOT NULL,
    args_digest  TEXT NOT NULL DEFAULT '',
    status       TEXT NOT NULL,
    claimed_by   TEXT,
    wake_at      TEXT,
    error        TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""

_CREATE_IDX_DUE = """
CREATE INDEX IF NOT EXISTS idx_runs_status_wake ON workflow_runs(status, wake_at);
"""

_CREATE_JOURNAL = """
CREATE TABLE IF NOT EXISTS workflow_journal (
    run_id       TEXT NOT NULL,
    seq          INTEGER NOT NULL,
    kind         TEXT NOT NULL,
    name         TEXT NOT NULL,
    outcome      TEXT NOT NULL,
    result_json  TEXT NOT NULL DEFAULT 'null',
    recorded_at  TEXT NOT NULL,
    PRIMARY KEY (run_id, seq)
);
"""

_SELECT_RUN = """
SELECT r.run_id, r.workflow, r.args_digest, r.status, r.wake_at, r.error,
       r.created_at, r.updated_at,
       (SELECT COUNT(*) FROM workflow_journal j
         WHERE j.run_id = r.run_id AND j.kind = 'step' AND j.outcome = 'ok')
FROM workflow_runs r
"""


def _kind_of(command: Any) -> str:
    if isinstance(command, Suspend):
        return "suspend"
    if isinstance(command, Step):
        return "step"
    raise TypeError(f"Unsupported workflow command: {command!r}")


class SQLiteWorkflowRuntime:
    """Durable runtime persisting runs and step journals in SQLite.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    clock:
        Returns the current UTC instant.  Injected by tests to move time.
    inline:
        When true, :meth:`start` advances the new run immediately (up to
        its first future suspension).  When false, new runs wait for the
        next :meth:`tick`.
    lease_seconds:
        How long a claim on a ``running`` run stays valid without a journal
        write.  Only runs idle for longer are taken over by :meth:`recover`.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        clock: Callable[[], datetime] = utc_now,
        inline: bool = True,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
    ) -> None:
        self._db_path = prepare_path(db_path)
        self._clock = clock
        self._inline = inline
        self._lease = timedelta(seconds=lease_seconds)
        self._owner = uuid.uuid4().hex
        self._workflows: dict[str, WorkflowFn] = {}
        self._init_schema()

    def _init_schema(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(_CREATE_RUNS)
            columns = {row[1] for row in conn.execute("PRAGMA table_info(workflow_runs)")}
            if "claimed_by" not in columns:
                conn.execute("ALTER TABLE workflow_runs ADD COLUMN claimed_by TEXT")
            conn.execute(_CREATE_IDX_DUE)
            conn.execute(_CREATE_JOURNAL)
            conn.commit()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Registration and start
    # ------------------------------------------------------------------

    def register_workflow(self, name: str, fn: WorkflowFn) -> None:
        self._workflows[name] = fn
        logger.debug("Registered workflow %s", name)

    def start(self, workflow: str, args: Mapping[str, Any]) -> str:
        """Persist a new run and (when inline) advance it right away."""
        if workflow not in self._workflows:
            raise UnknownWorkflowError(f"No workflow registered as {workflow!r}")

        run_id = f"run-{uuid.uuid4().hex}"
        now = to_db_time(self._clock())
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO workflow_runs
                    (run_id, workflow, args_json, args_digest, status,
                     created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    workflow,
                    canonical_json(dict(args)),
                    content_digest(dict(args)),
                    RunStatus.PENDING.value,
                    now,
                    now,
                ),
            )
            conn.commit()
        logger.info("Started %s run %s", workflow, run_id)

        if self._inline:
            self._claim_and_advance(run_id, RunStatus.PENDING)
        return run_id

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    def tick(self) -> list[str]:
        """Advance every pending run and every sleeping run that is due.

        Returns the ids of the runs this call advanced.
        """
        now = to_db_time(self._clock())
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT run_id, status FROM workflow_runs
                WHERE status = ? OR (status = ? AND wake_at <= ?)
                ORDER BY created_at, run_id
                """,
                (RunStatus.PENDING.value, RunStatus.SLEEPING.value, now),
            ).fetchall()

        advanced: list[str] = []
        for run_id, status in rows:
            if self._claim_and_advance(run_id, RunStatus(status)) is not None:
                advanced.append(run_id)
        return advanced

    def recover(self) -> int:
        """Requeue runs left ``running`` by a process that died mid-advance.

        A run counts as abandoned once its lease has expired, i.e. nothing
        was journaled for it for ``lease_seconds``.  Runs another process
        is still advancing are left alone.
        """
        now = self._clock()
        with connect(self._db_path) as conn:
            cursor = conn.execute(
                "UPDATE workflow_runs SET status = ?, claimed_by = NULL, updated_at = ? "
                "WHERE status = ? AND updated_at < ?",
                (
                    RunStatus.PENDING.value,
                    to_db_time(now),
                    RunStatus.RUNNING.value,
                    to_db_time(now - self._lease),
                ),
            )
            conn.commit()
            count = cursor.rowcount
        if count:
            logger.warning("Recovered %d interrupted run(s)", count)
        return count

    def run_worker(
        self, poll_interval: float = 5.0, *, max_ticks: int | None = None
    ) -> int:
        """Recover, then tick every *poll_interval* seconds.

        Returns the total number of run advances performed.  Runs forever
        unless *max_ticks* is given.
        """
        self.recover()
        ticks = 0
        advanced = 0
        while True:
            advanced += len(self.tick())
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                return advanced
            time.sleep(poll_interval)

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_run(self, run_id: str) -> WorkflowRun | None:
        with connect(self._db_path) as conn:
            row = conn.execute(_SELECT_RUN + " WHERE r.run_id = ?", (run_id,)).fetchone()
        return self._row_to_run(row) if row else None

    def list_runs(
        self, status: RunStatus | None = None, limit: int = 50
    ) -> list[WorkflowRun]:
        query = _SELECT_RUN
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE r.status = ?"
            params = (status.value,)
        query += " ORDER BY r.created_at DESC, r.run_id LIMIT ?"
        with connect(self._db_path) as conn:
            rows = conn.execute(query, params + (limit,)).fetchall()
        return [self._row_to_run(row) for row in rows]

    def journal(self, run_id: str) -> list[JournalEntry]:
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT run_id, seq, kind, name, outcome, result_json, recorded_at
                FROM workflow_journal WHERE run_id = ? ORDER BY seq ASC
                """,
                (run_id,),
            ).fetchall()
        return [
            JournalEntry(
                run_id=row[0],
                seq=row[1],
                kind=row[2],
                name=row[3],
                outcome=row[4],
                result=json.loads(row[5]),
                recorded_at=from_db_time(row[6]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Advancing
    # ------------------------------------------------------------------

    def _claim_and_advance(self, run_id: str, expected: RunStatus) -> RunStatus | None:
        """Claim *run_id* if it is still *expected*, then advance it.

        Returns ``None`` when the run was not claimed, or when the claim
        was lost to another runtime mid-advance.
        """
        with connect(self._db_path) as conn:
            cursor = conn.execute(
                "UPDATE workflow_runs SET status = ?, claimed_by = ?, updated_at = ? "
                "WHERE run_id = ? AND status = ?",
                (
                    RunStatus.RUNNING.value,
                    self._owner,
                    to_db_time(self._clock()),
                    run_id,
                    expected.value,
                ),
            )
            conn.commit()
            claimed = cursor.rowcount == 1
        if not claimed:
            return None
        return self._advance(run_id)

    def _advance(self, run_id: str) -> RunStatus | None:
        with connect(self._db_path) as conn:
            workflow, args_json = conn.execute(
                "SELECT workflow, args_json FROM workflow_runs WHERE run_id = ?",
                (run_id,),
            ).fetchone()

        fn = self._workflows.get(workflow)
        if fn is None:
            return self._fail(run_id, f"No workflow registered as {workflow!r}")

        try:
            generator = fn(json.loads(args_json))
        except Exception as exc:
            return self._fail(run_id, str(exc) or type(exc).__name__)
        return self._drive(run_id, generator, self.journal(run_id))

    def _drive(
        self,
        run_id: str,
        generator: Generator[Command, Any, Any],
        journal: list[JournalEntry],
    ) -> RunStatus | None:
        seq = 0
        send_value: Any = None
        pending_error: BaseException | None = None
        try:
            while True:
                if pending_error is not None:
                    error, pending_error = pending_error, None
                    command = generator.throw(error)
                else:
                    command = generator.send(send_value)
                send_value = None
                kind = _kind_of(command)

                # Replay: completed commands are answered from the journal.
                if seq < len(journal):
                    entry = journal[seq]
                    seq += 1
                    if entry.kind != kind:
                        raise WorkflowReplayError(
                            f"Run {run_id} diverged at seq {entry.seq}: "
                            f"journal has {entry.kind}, workflow yielded {kind}"
                        )
                    if entry.outcome == "error":
                        pending_error = StepFailedError(str(entry.result or entry.name))
                    else:
                        send_value = entry.result
                    continue

                if isinstance(command, Suspend):
                    until = as_utc(command.until)
                    if until > as_utc(self._clock()):
                        self._sleep(run_id, until)
                        generator.close()
                        return RunStatus.SLEEPING
                    self._record(run_id, seq, kind, "suspend", "ok", to_db_time(until))
                    seq += 1
                    continue

                try:
                    result = command.action()
                except Exception as exc:
                    self._record(
                        run_id, seq, kind, command.name, "error",
                        str(exc) or type(exc).__name__,
                    )
                    seq += 1
                    pending_error = exc
                    continue
                self._record(run_id, seq, kind, command.name, "ok", result)
                seq += 1
                send_value = result
        except StopIteration:
            if not self._finish(run_id, RunStatus.COMPLETED):
                return None
            logger.info("Run %s completed", run_id)
            return RunStatus.COMPLETED
        except RunClaimLostError as exc:
            generator.close()
            logger.warning("%s; stopped advancing", exc)
            return None
        except Exception as exc:
            return self._fail(run_id, str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Internal writes
    # ------------------------------------------------------------------

    def _renew_claim(self, conn: sqlite3.Connection, run_id: str) -> None:
        cursor = conn.execute(
            "UPDATE workflow_runs SET updated_at = ? "
            "WHERE run_id = ? AND status = ? AND claimed_by = ?",
            (to_db_time(self._clock()), run_id, RunStatus.RUNNING.value, self._owner),
        )
        if cursor.rowcount != 1:
            raise RunClaimLostError(f"Run {run_id} is no longer claimed by this runtime")

    def _record(
        self, run_id: str, seq: int, kind: str, name: str, outcome: str, result: Any
    ) -> None:
        """Journal one command outcome and renew the claim, atomically."""
        with connect(self._db_path) as conn:
            try:
                self._renew_claim(conn, run_id)
                conn.execute(
                    """
                    INSERT INTO workflow_journal
                        (run_id, seq, kind, name, outcome, result_json, recorded_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        run_id,
                        seq,
                        kind,
                        name,
                        outcome,
                        canonical_json(result),
                        to_db_time(self._clock()),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise RunClaimLostError(
                    f"Run {run_id} seq {seq} was journaled by another runtime"
                ) from exc
            except RunClaimLostError:
                conn.rollback()
                raise
            conn.commit()

    def _sleep(self, run_id: str, until: datetime) -> None:
        with connect(self._db_path) as conn:
            cursor = conn.execute(
                "UPDATE workflow_runs SET status = ?, claimed_by = NULL, wake_at = ?, "
                "updated_at = ? WHERE run_id = ? AND claimed_by = ?",
                (
                    RunStatus.SLEEPING.value,
                    to_db_time(until),
                    to_db_time(self._clock()),
                    run_id,
                    self._owner,
                ),
            )
            conn.commit()
        if cursor.rowcount != 1:
            raise RunClaimLostError(f"Run {run_id} is no longer claimed by this runtime")
        logger.info("Run %s sleeping until %s", run_id, until.isoformat())

    def _finish(self, run_id: str, status: RunStatus, error: str | None = None) -> bool:
        """Store a terminal *status*; false if the run is held by another runtime."""
        with connect(self._db_path) as conn:
            cursor = conn.execute(
                "UPDATE workflow_runs SET status = ?, claimed_by = NULL, wake_at = NULL, "
                "error = ?, updated_at = ? WHERE run_id = ? AND claimed_by = ?",
                (status.value, error, to_db_time(self._clock()), run_id, self._owner),
            )
            conn.commit()
        if cursor.rowcount != 1:
            logger.warning(
                "Run %s is no longer claimed by this runtime; %s not stored",
                run_id,
                status.value,
            )
            return False
        return True

    def _fail(self, run_id: str, message: str) -> RunStatus | None:
        if not self._finish(run_id, RunStatus.FAILED, error=message):
            return None
        logger.error("Run %s failed: %s", run_id, message)
        return RunStatus.FAILED

    @staticmethod
    def _row_to_run(row: tuple) -> WorkflowRun:
        (
            run_id,
            workflow,
            args_digest,
            status,
            wake_at,
            error,
            created_at,
            updated_at,
            steps_completed,
        ) = row
        return WorkflowRun(
            run_id=run_id,
            workflow=workflow,
            args_digest=args_digest,
            status=RunStatus(status),
            wake_at=from_db_time(wake_at),
            error=error,
            created_at=from_db_time(created_at),
            updated_at=from_db_time(updated_at),
            steps_completed=steps_completed,
        )
