"""Expanded effects and delivery batches.

An :class:`Effect` is one concrete, serializable unit of notification work:
one recipient, one channel, every template already resolved to a plain
value.  The effects produced by a single emission form a
:class:`DeliveryBatch`, which is what the durable runtime persists.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from obranotify.models.context import EventContext
from obranotify.models.rules import Channel


class Effect(BaseModel):
    """A single notification to deliver to one recipient on one channel."""

    model_config = ConfigDict(frozen=True)

    effect_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    channel: Channel
    deliver_at: datetime | None = None  # None means deliver immediately
    title: str | None = None
    body: str | None = None
    subject: str | None = None
    html: str | None = None
    action_url: str | None = None
    data: dict[str, Any] = {}
    notification_type: str | None = None
    recipient_id: str
    recipient_address: str | None = None
    context: EventContext
    should_send: bool = True
    execution_id: str | None = None

    @property
    def is_immediate(self) -> bool:
        return self.deliver_at is None


class DeliveryBatch(BaseModel):
    """All effects of one emission, delivered in order by one durable run."""

    model_config = ConfigDict(frozen=True)

    batch_id: str = Field(default_factory=lambda: f"batch-{uuid.uuid4().hex[:12]}")
    event_type: str
    execution_id: str | None = None
    effects: tuple[Effect, ...] = ()

    @property
    def recipient_ids(self) -> list[str]:
        """Distinct recipient ids, in first-seen order."""
        return list(dict.fromkeys(effect.recipient_id for effect in self.effects))

    def to_args(self) -> dict[str, Any]:
        """Serialize for storage as durable-run arguments."""
        return self.model_dump(mode="json", by_alias=True)
