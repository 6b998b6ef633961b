"""Payload models exchanged with the channel adapters."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class NotificationRow(BaseModel):
    """An in-app notification row ready for persistence."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    tenant_id: str | None = None
    title: str = ""
    body: str | None = None
    type: str = "info"
    action_url: str | None = None
    related_entity_id: str | None = None  # linked pendiente, if any
    data: dict[str, Any] = {}


class EmailMessage(BaseModel):
    """An outbound email."""

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    html: str


class ExecutionStatus(str, Enum):
    """Lifecycle of an external execution record."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStatusUpdate(BaseModel):
    """A terminal (or reset) status for an execution record."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    status: ExecutionStatus
    error_message: str | None = None
