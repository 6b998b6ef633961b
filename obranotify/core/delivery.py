"""Delivery workflow — the durable routine that walks one batch.

The workflow is a generator of commands interpreted by a durable runtime
(:mod:`obranotify.durable`).  It walks the batch strictly in list order:
an effect with a far-future ``deliver_at`` holds back every later effect
of the same batch, even one due sooner.

Per effect:

1. ``should_send`` false: skipped, no command.
2. ``deliver_at`` set: ``Suspend(deliver_at)``.
3. One ``Step`` performing the channel side effect.

After the loop the linked execution record (if any) is marked
``completed``.  The first step failure stops the batch, marks the
execution ``failed`` with the error message and is re-raised so the
runtime records the run as failed.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Generator, Mapping
from functools import partial
from typing import Any, Protocol

from obranotify.channels import ChannelAdapters
from obranotify.models.channels import (
    EmailMessage,
    ExecutionStatus,
    ExecutionStatusUpdate,
    NotificationRow,
)
from obranotify.models.effects import DeliveryBatch, Effect
from obranotify.models.rules import Channel
from obranotify.models.workflow import Command, Step, Suspend

logger = logging.getLogger(__name__)

DELIVER_EFFECTS_WORKFLOW = "deliver-effects"
DEFAULT_SUBJECT = "Notificación"
DEFAULT_NOTIFICATION_TYPE = "info"


class WorkflowRegistrar(Protocol):
    def register_workflow(self, name: str, fn: Any) -> None:
        ...


def fallback_html(title: str | None, body: str | None) -> str:
    """HTML body used when an email effect has no html template."""
    return (
        f"<p>{html.escape(title or DEFAULT_SUBJECT)}</p>"
        f"<p>{html.escape(body or '')}</p>"
    )


class DeliveryWorkflow:
    """Callable workflow: persisted batch arguments in, command generator out.

    Parameters
    ----------
    adapters:
        Channel adapters the steps write through.
    """

    def __init__(self, adapters: ChannelAdapters) -> None:
        self._adapters = adapters

    def __call__(self, args: Mapping[str, Any]) -> Generator[Command, Any, None]:
        return self.run(DeliveryBatch.model_validate(args))

    def run(self, batch: DeliveryBatch) -> Generator[Command, Any, None]:
        delivered = 0
        try:
            for index, effect in enumerate(batch.effects):
                if not effect.should_send:
                    logger.debug("Batch %s: effect %d not flagged for sending", batch.batch_id, index)
                    continue

                if effect.deliver_at is not None:
                    yield Suspend(until=effect.deliver_at)

                if effect.channel is Channel.IN_APP:
                    yield Step(
                        name=f"in-app:{index}",
                        action=partial(self._deliver_in_app, effect),
                    )
                    delivered += 1
                elif effect.channel is Channel.EMAIL:
                    if not effect.recipient_address:
                        logger.debug(
                            "Batch %s: no address for user %s, email skipped",
                            batch.batch_id,
                            effect.recipient_id,
                        )
                        continue
                    yield Step(
                        name=f"email:{index}",
                        action=partial(self._deliver_email, effect),
                    )
                    delivered += 1
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("Batch %s (%s) failed: %s", batch.batch_id, batch.event_type, message)
            if batch.execution_id:
                yield Step(
                    name="execution:failed",
                    action=partial(
                        self._mark_execution,
                        batch.execution_id,
                        ExecutionStatus.FAILED,
                        message,
                    ),
                )
            raise

        if batch.execution_id:
            yield Step(
                name="execution:completed",
                action=partial(
                    self._mark_execution, batch.execution_id, ExecutionStatus.COMPLETED
                ),
            )
        logger.info(
            "Batch %s (%s) delivered %d of %d effect(s)",
            batch.batch_id,
            batch.event_type,
            delivered,
            len(batch.effects),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _deliver_in_app(self, effect: Effect) -> None:
        related = effect.context.get("pendienteId")
        row = NotificationRow(
            user_id=effect.recipient_id,
            tenant_id=effect.context.tenant_id,
            title=effect.title or "",
            body=effect.body,
            type=effect.notification_type or DEFAULT_NOTIFICATION_TYPE,
            action_url=effect.action_url,
            related_entity_id=str(related) if related is not None else None,
            data=dict(effect.data),
        )
        self._adapters.notifications.insert_notification(row)

    def _deliver_email(self, effect: Effect) -> None:
        message = EmailMessage(
            to=effect.recipient_address or "",
            subject=effect.subject or effect.title or DEFAULT_SUBJECT,
            html=effect.html or fallback_html(effect.title, effect.body),
        )
        self._adapters.email.send_email(message)

    def _mark_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: str | None = None,
    ) -> None:
        self._adapters.executions.mark_execution_status(
            ExecutionStatusUpdate(
                id=execution_id, status=status, error_message=error_message
            )
        )


def install_delivery_workflow(
    runtime: WorkflowRegistrar, adapters: ChannelAdapters
) -> DeliveryWorkflow:
    """Register the delivery workflow on *runtime* under its well-known name."""
    workflow = DeliveryWorkflow(adapters)
    runtime.register_workflow(DELIVER_EFFECTS_WORKFLOW, workflow)
    return workflow
