"""obranotify data models — all Pydantic v2, all frozen (immutable)."""

from obranotify.models.channels import (
    EmailMessage,
    ExecutionStatus,
    ExecutionStatusUpdate,
    NotificationRow,
)
from obranotify.models.context import EventContext
from obranotify.models.effects import DeliveryBatch, Effect
from obranotify.models.rules import (
    Channel,
    EffectDefinition,
    FromContext,
    Rule,
    Static,
    Template,
    as_template,
)
from obranotify.models.workflow import (
    Command,
    JournalEntry,
    RunStatus,
    Step,
    Suspend,
    WorkflowRun,
)

__all__ = [
    # context
    "EventContext",
    # rules
    "Channel",
    "EffectDefinition",
    "FromContext",
    "Rule",
    "Static",
    "Template",
    "as_template",
    # effects
    "DeliveryBatch",
    "Effect",
    # channels
    "EmailMessage",
    "ExecutionStatus",
    "ExecutionStatusUpdate",
    "NotificationRow",
    # workflow
    "Command",
    "JournalEntry",
    "RunStatus",
    "Step",
    "Suspend",
    "WorkflowRun",
]
