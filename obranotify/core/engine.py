"""Notification engine — the public entry point for emitting events.

The engine wires together the frozen RuleRegistry, the RecipientResolver,
the EffectExpander and a durable WorkflowRuntime.  ``emit`` expands an
event into effects and, when there is anything to deliver, hands the whole
ordered list to the runtime as one durable run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from obranotify.channels import ChannelAdapters
from obranotify.channels.directory import SQLiteDirectory
from obranotify.channels.email import ResendEmailSender
from obranotify.channels.sqlite_store import (
    SQLiteExecutionTracker,
    SQLiteNotificationStore,
)
from obranotify.config import NotifyConfig
from obranotify.core.delivery import DELIVER_EFFECTS_WORKFLOW, install_delivery_workflow
from obranotify.core.expander import EffectExpander
from obranotify.core.recipients import RecipientResolver
from obranotify.core.registry import RuleRegistry
from obranotify.core.when import utc_now
from obranotify.durable.base import WorkflowRuntime
from obranotify.durable.sqlite import SQLiteWorkflowRuntime
from obranotify.models.context import EventContext
from obranotify.models.effects import DeliveryBatch, Effect
from obranotify.rules.catalog import build_default_registry

logger = logging.getLogger(__name__)


def as_context(ctx: EventContext | Mapping[str, Any] | None) -> EventContext:
    """Accept an :class:`EventContext` or a plain mapping of wire keys."""
    if isinstance(ctx, EventContext):
        return ctx
    return EventContext.model_validate(dict(ctx or {}))


class NotificationEngine:
    """Dispatch engine: events in, durable delivery runs out.

    Parameters
    ----------
    registry:
        Rule lookup.  Frozen on construction if it is not already.
    resolver:
        Recipient and contact-address resolution.
    runtime:
        Durable substrate the delivery runs are started on.
    adapters:
        Channel adapters.  When given, the delivery workflow is registered
        on *runtime*; otherwise the caller must have registered it.
    clock:
        Returns the current UTC instant.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        resolver: RecipientResolver,
        runtime: WorkflowRuntime,
        *,
        adapters: ChannelAdapters | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.registry = registry.freeze()
        self.resolver = resolver
        self.runtime = runtime
        self.adapters = adapters
        self.expander = EffectExpander(self.registry, resolver, clock=clock)
        if adapters is not None:
            install_delivery_workflow(runtime, adapters)

    @classmethod
    def from_config(
        cls,
        cfg: NotifyConfig | None = None,
        *,
        registry: RuleRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> NotificationEngine:
        """Build an engine on the SQLite runtime, stores and Resend transport.

        All SQLite-backed parts share ``cfg.database_path``.
        """
        cfg = cfg or NotifyConfig()
        db_path = cfg.database_path
        adapters = ChannelAdapters(
            notifications=SQLiteNotificationStore(db_path, clock=clock),
            email=ResendEmailSender.from_config(cfg),
            executions=SQLiteExecutionTracker(db_path, clock=clock),
        )
        runtime = SQLiteWorkflowRuntime(
            db_path,
            clock=clock,
            inline=cfg.inline_delivery,
            lease_seconds=cfg.run_lease_seconds,
        )
        if registry is None:
            registry = build_default_registry(
                clock=clock,
                follow_up=timedelta(minutes=cfg.default_follow_up_minutes),
            )
        return cls(
            registry,
            RecipientResolver(SQLiteDirectory(db_path)),
            runtime,
            adapters=adapters,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def expand(
        self, event_type: str, ctx: EventContext | Mapping[str, Any] | None = None
    ) -> list[Effect]:
        """Expand without scheduling anything (dry run)."""
        return self.expander.expand(event_type, as_context(ctx))

    def emit(
        self, event_type: str, ctx: EventContext | Mapping[str, Any] | None = None
    ) -> str | None:
        """Expand *event_type* and start one durable delivery run.

        Returns the run id, or ``None`` when nothing was left to deliver
        (unknown event type, no recipients, every effect guarded out).
        """
        context = as_context(ctx)
        effects = self.expander.expand(event_type, context)
        if not effects:
            logger.debug("Event %s produced no effects; no run started", event_type)
            return None

        batch = DeliveryBatch(
            event_type=event_type,
            execution_id=context.execution_id or None,
            effects=tuple(effects),
        )
        run_id = self.runtime.start(DELIVER_EFFECTS_WORKFLOW, batch.to_args())
        logger.info(
            "Emitted %s: %d effect(s) for %d recipient(s) in run %s",
            event_type,
            len(effects),
            len(batch.recipient_ids),
            run_id,
        )
        return run_id

    def close(self) -> None:
        """Release the channel adapters' resources (the email HTTP client)."""
        if self.adapters is not None:
            self.adapters.close()
