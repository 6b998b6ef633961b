"""Shared test fixtures for obranotify."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from obranotify.channels import ChannelAdapters
from obranotify.channels.directory import InMemoryDirectory
from obranotify.channels.email import BufferedEmailSender
from obranotify.core.engine import NotificationEngine
from obranotify.core.recipients import RecipientResolver
from obranotify.durable.immediate import ImmediateRuntime
from obranotify.durable.sqlite import SQLiteWorkflowRuntime
from obranotify.models.channels import (
    EmailMessage,
    ExecutionStatusUpdate,
    NotificationRow,
)
from obranotify.models.context import EventContext
from obranotify.rules import build_default_registry

START = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock; call it to read, ``advance`` to move it."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


# ---------------------------------------------------------------------------
# Recording adapters: capture side effects in call order
# ---------------------------------------------------------------------------


class RecordingNotificationStore:
    def __init__(self, calls: list[tuple[str, Any]]) -> None:
        self.rows: list[NotificationRow] = []
        self._calls = calls

    def insert_notification(self, row: NotificationRow) -> None:
        self.rows.append(row)
        self._calls.append(("in-app", row))


class RecordingEmailSender(BufferedEmailSender):
    def __init__(self, calls: list[tuple[str, Any]]) -> None:
        super().__init__()
        self.sent: list[EmailMessage] = []
        self._calls = calls

    def send_email(self, message: EmailMessage) -> None:
        super().send_email(message)
        self.sent.append(message)
        self._calls.append(("email", message))


class FailingEmailSender:
    def __init__(self, message: str = "smtp down") -> None:
        self.message = message
        self.attempts = 0

    def send_email(self, message: EmailMessage) -> None:
        self.attempts += 1
        raise RuntimeError(self.message)


class RecordingExecutionTracker:
    def __init__(self, calls: list[tuple[str, Any]]) -> None:
        self.updates: list[ExecutionStatusUpdate] = []
        self._calls = calls

    def mark_execution_status(self, update: ExecutionStatusUpdate) -> None:
        self.updates.append(update)
        self._calls.append(("execution", update))


class RecordingAdapters(ChannelAdapters):
    """Channel adapters that share one ordered call log."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        super().__init__(
            notifications=RecordingNotificationStore(self.calls),
            email=RecordingEmailSender(self.calls),
            executions=RecordingExecutionTracker(self.calls),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock frozen at 2025-03-10 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Provide a directory with three users; u2 and u3 are foremen in t1."""
    return InMemoryDirectory(
        addresses={
            "u1": "u1@example.com",
            "u2": "u2@example.com",
            "u3": "u3@example.com",
        },
        roles={("t1", "foreman"): ["u2", "u3"]},
    )


@pytest.fixture
def resolver(directory: InMemoryDirectory) -> RecipientResolver:
    return RecipientResolver(directory)


@pytest.fixture
def adapters() -> RecordingAdapters:
    return RecordingAdapters()


@pytest.fixture
def runtime(clock: FakeClock) -> ImmediateRuntime:
    """Provide an in-process runtime that records (but skips) suspensions."""
    return ImmediateRuntime(clock=clock)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Provide a path for a fresh SQLite database."""
    return tmp_path / "notify.db"


@pytest.fixture
def sqlite_runtime(db_path: Path, clock: FakeClock) -> SQLiteWorkflowRuntime:
    """Provide a durable runtime on a temp database driven by the fake clock."""
    return SQLiteWorkflowRuntime(db_path, clock=clock)


@pytest.fixture
def engine(
    resolver: RecipientResolver,
    runtime: ImmediateRuntime,
    adapters: RecordingAdapters,
    clock: FakeClock,
) -> NotificationEngine:
    """Provide an engine with the built-in rules on the immediate runtime."""
    return NotificationEngine(
        build_default_registry(clock=clock),
        resolver,
        runtime,
        adapters=adapters,
        clock=clock,
    )


@pytest.fixture
def make_context() -> Callable[..., EventContext]:
    """Factory fixture: build an EventContext with a tenant and actor."""

    def _factory(**overrides: Any) -> EventContext:
        values: dict[str, Any] = {"tenantId": "t1", "actorId": "u1"}
        values.update(overrides)
        return EventContext.model_validate(values)

    return _factory
