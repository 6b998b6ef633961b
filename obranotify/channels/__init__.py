"""Channel adapter protocols and the bundle handed to the delivery workflow.

Adapters are the side-effecting edge of the engine: in-app notification
persistence, email transmission and execution-status tracking.  Each is a
``Protocol`` so deployments can plug in their own store or transport;
reference SQLite and HTTP implementations live in the submodules.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from obranotify.models.channels import (
    EmailMessage,
    ExecutionStatusUpdate,
    NotificationRow,
)


@runtime_checkable
class NotificationStore(Protocol):
    """Persists in-app notification rows."""

    def insert_notification(self, row: NotificationRow) -> None:
        ...


@runtime_checkable
class EmailSender(Protocol):
    """Transmits emails.  Failures must raise so the batch fails."""

    def send_email(self, message: EmailMessage) -> None:
        ...


@runtime_checkable
class ExecutionTracker(Protocol):
    """Updates external execution records.  No-op when the id is absent."""

    def mark_execution_status(self, update: ExecutionStatusUpdate) -> None:
        ...


class ChannelAdapters:
    """The adapters a delivery workflow writes through."""

    def __init__(
        self,
        notifications: NotificationStore,
        email: EmailSender,
        executions: ExecutionTracker,
    ) -> None:
        self.notifications = notifications
        self.email = email
        self.executions = executions

    def close(self) -> None:
        """Release adapter resources (e.g. an HTTP client) where an adapter holds any."""
        for adapter in (self.notifications, self.email, self.executions):
            close = getattr(adapter, "close", None)
            if callable(close):
                close()

    def __repr__(self) -> str:
        return (
            f"ChannelAdapters(notifications={type(self.notifications).__name__}, "
            f"email={type(self.email).__name__}, "
            f"executions={type(self.executions).__name__})"
        )
