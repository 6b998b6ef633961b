"""SQLite reference implementations of the persistence adapters.

:class:`SQLiteNotificationStore` keeps in-app notifications and
:class:`SQLiteExecutionTracker` keeps the execution records that scheduled
flow actions report back to.  Both may share the runtime's database file.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from obranotify.core.db import connect, from_db_time, prepare_path, to_db_time
from obranotify.core.hasher import canonical_json
from obranotify.core.when import utc_now
from obranotify.models.channels import (
    ExecutionStatus,
    ExecutionStatusUpdate,
    NotificationRow,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_NOTIFICATIONS = """
CREATE TABLE IF NOT EXISTS notifications (
    id                 TEXT PRIMARY KEY,
    user_id            TEXT NOT NULL,
    tenant_id          TEXT,
    title              TEXT NOT NULL DEFAULT '',
    body               TEXT,
    type               TEXT NOT NULL DEFAULT 'info',
    action_url         TEXT,
    related_entity_id  TEXT,
    data_json          TEXT NOT NULL DEFAULT '{}',
    created_at         TEXT NOT NULL
);
"""

_CREATE_IDX_NOTIFICATIONS_USER = """
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at);
"""

_CREATE_EXECUTIONS = """
CREATE TABLE IF NOT EXISTS flujo_executions (
    id             TEXT PRIMARY KEY,
    obra_id        TEXT,
    flujo_action_id TEXT,
    status         TEXT NOT NULL DEFAULT 'pending',
    error_message  TEXT,
    scheduled_for  TEXT,
    executed_at    TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
"""


class SQLiteNotificationStore:
    """In-app notification table.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db_path = prepare_path(db_path)
        self._clock = clock
        with connect(self._db_path) as conn:
            conn.execute(_CREATE_NOTIFICATIONS)
            conn.execute(_CREATE_IDX_NOTIFICATIONS_USER)
            conn.commit()

    def insert_notification(self, row: NotificationRow) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO notifications
                    (id, user_id, tenant_id, title, body, type, action_url,
                     related_entity_id, data_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(uuid.uuid4()),
                    row.user_id,
                    row.tenant_id,
                    row.title,
                    row.body,
                    row.type,
                    row.action_url,
                    row.related_entity_id,
                    canonical_json(row.data),
                    to_db_time(self._clock()),
                ),
            )
            conn.commit()
        logger.debug("Stored %s notification for user %s", row.type, row.user_id)

    def list_for_user(self, user_id: str) -> list[NotificationRow]:
        """Return the user's notifications, oldest first."""
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT user_id, tenant_id, title, body, type, action_url,
                       related_entity_id, data_json
                FROM notifications WHERE user_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (user_id,),
            ).fetchall()
        return [
            NotificationRow(
                user_id=row[0],
                tenant_id=row[1],
                title=row[2],
                body=row[3],
                type=row[4],
                action_url=row[5],
                related_entity_id=row[6],
                data=json.loads(row[7]),
            )
            for row in rows
        ]

    def count(self) -> int:
        with connect(self._db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM notifications").fetchone()[0]


class SQLiteExecutionTracker:
    """Execution records for scheduled flow actions.

    A record is created ``pending`` when the action is scheduled; the
    delivery workflow closes it as ``completed`` or ``failed``.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db_path = prepare_path(db_path)
        self._clock = clock
        with connect(self._db_path) as conn:
            conn.execute(_CREATE_EXECUTIONS)
            conn.commit()

    def create(
        self,
        execution_id: str | None = None,
        *,
        obra_id: str | None = None,
        flujo_action_id: str | None = None,
        scheduled_for: datetime | None = None,
    ) -> str:
        """Insert a ``pending`` record and return its id."""
        execution_id = execution_id or str(uuid.uuid4())
        now = to_db_time(self._clock())
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO flujo_executions
                    (id, obra_id, flujo_action_id, status, scheduled_for,
                     created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    execution_id,
                    obra_id,
                    flujo_action_id,
                    ExecutionStatus.PENDING.value,
                    to_db_time(scheduled_for) if scheduled_for else None,
                    now,
                    now,
                ),
            )
            conn.commit()
        return execution_id

    def mark_execution_status(self, update: ExecutionStatusUpdate) -> None:
        if not update.id:
            return
        now = to_db_time(self._clock())
        executed_at = now if update.status is not ExecutionStatus.PENDING else None
        with connect(self._db_path) as conn:
            cursor = conn.execute(
                """
                UPDATE flujo_executions
                SET status = ?, error_message = ?, updated_at = ?,
                    executed_at = COALESCE(?, executed_at)
                WHERE id = ?
                """,
                (update.status.value, update.error_message, now, executed_at, update.id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            logger.warning("Execution %s not found; status %s not recorded", update.id, update.status.value)
        else:
            logger.info("Execution %s marked %s", update.id, update.status.value)

    def get(self, execution_id: str) -> dict[str, Any] | None:
        with connect(self._db_path) as conn:
            row = conn.execute(
                """
                SELECT id, obra_id, flujo_action_id, status, error_message,
                       scheduled_for, executed_at, created_at, updated_at
                FROM flujo_executions WHERE id = ?
                """,
                (execution_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "id": row[0],
            "obra_id": row[1],
            "flujo_action_id": row[2],
            "status": ExecutionStatus(row[3]),
            "error_message": row[4],
            "scheduled_for": from_db_time(row[5]),
            "executed_at": from_db_time(row[6]),
            "created_at": from_db_time(row[7]),
            "updated_at": from_db_time(row[8]),
        }
