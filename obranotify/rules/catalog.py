"""Built-in rule catalog.

Rules for the application's domain events plus the two generic
``custom.*`` events used by the helper API.  Catalog functions take the
clock and follow-up delay as arguments so the frozen registry can be
built deterministically in tests.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, time, timedelta
from typing import Any

from obranotify.core.recipients import role_token
from obranotify.core.registry import RuleRegistry
from obranotify.core.when import NOW, as_utc, coerce_instant, utc_now
from obranotify.models.context import EventContext
from obranotify.models.rules import Channel, EffectDefinition, Rule

OBRA_COMPLETED = "obra.completed"
DOCUMENT_REMINDER_REQUESTED = "document.reminder.requested"
CUSTOM_IN_APP = "custom.in_app"
CUSTOM_IN_APP_ROLE = "custom.in_app.role"
FLUJO_ACTION_TRIGGERED = "flujo.action.triggered"

DEFAULT_FOLLOW_UP = timedelta(minutes=2)
REMINDER_HOUR = time(9, 0)


# ---------------------------------------------------------------------------
# Recipient selectors
# ---------------------------------------------------------------------------


def _single(key: str) -> Callable[[EventContext], list[str]]:
    def recipients(ctx: EventContext) -> list[str]:
        value = ctx.get(key)
        return [str(value)] if value else []

    recipients.__name__ = f"recipients_from_{key}"
    return recipients


def _role_recipients(ctx: EventContext) -> list[str]:
    role_key = ctx.get("roleKey") or ctx.get("role")
    return [role_token(str(role_key))] if role_key else []


def _obra(ctx: EventContext) -> dict[str, Any]:
    obra = ctx.get("obra")
    return obra if isinstance(obra, dict) else {}


def _obra_link(obra_id: Any) -> str | None:
    return f"/excel/{obra_id}" if obra_id else None


# ---------------------------------------------------------------------------
# obra.completed
# ---------------------------------------------------------------------------


def obra_completed_rule(
    *,
    clock: Callable[[], datetime] = utc_now,
    follow_up: timedelta = DEFAULT_FOLLOW_UP,
) -> Rule:
    """Notify the actor in-app now; email a follow-up later.

    The follow-up goes out at ``followUpAt`` when given, otherwise
    *follow_up* after emission.
    """

    def follow_up_at(ctx: EventContext) -> Any:
        return ctx.get("followUpAt") or clock() + follow_up

    def name(ctx: EventContext) -> str:
        return _obra(ctx).get("name") or "Obra"

    return Rule(
        description="Obra reached 100%: in-app now, email follow-up later",
        recipients=_single("actorId"),
        effects=(
            EffectDefinition(
                channel=Channel.IN_APP,
                when=NOW,
                title="Obra completada",
                body=lambda ctx: f'La obra "{_obra(ctx).get("name") or ""}" alcanzó el 100%.',
                action_url=lambda ctx: _obra_link(_obra(ctx).get("id")),
                notification_type="success",
            ),
            EffectDefinition(
                channel=Channel.EMAIL,
                when=follow_up_at,
                subject=lambda ctx: f"Seguimiento: {name(ctx)}",
                html=lambda ctx: (
                    "<p>Recordatorio: la obra "
                    f"<strong>{name(ctx)}</strong> fue completada recientemente.</p>"
                ),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# document.reminder.requested
# ---------------------------------------------------------------------------


def day_before_at_nine(due: Any) -> datetime | None:
    """09:00 UTC on the day before *due*; ``None`` if *due* is unusable."""
    instant = coerce_instant(due)
    if instant is None:
        return None
    day_before = as_utc(instant) - timedelta(days=1)
    return datetime.combine(day_before.date(), REMINDER_HOUR, tzinfo=day_before.tzinfo)


def document_reminder_rule() -> Rule:
    return Rule(
        description="In-app reminder the day before a document is due",
        recipients=_single("notifyUserId"),
        effects=(
            EffectDefinition(
                channel=Channel.IN_APP,
                when=lambda ctx: day_before_at_nine(ctx.get("dueDate")),
                title=lambda ctx: f"Recordatorio: {ctx.get('documentName', '')} pendiente",
                body=lambda ctx: f'Mañana vence el documento de "{ctx.get("obraName", "")}".',
                action_url=lambda ctx: _obra_link(ctx.get("obraId")),
                notification_type="reminder",
            ),
        ),
    )


# ---------------------------------------------------------------------------
# custom.in_app / custom.in_app.role
# ---------------------------------------------------------------------------

CUSTOM_IN_APP_EFFECT = EffectDefinition(
    channel=Channel.IN_APP,
    when=lambda ctx: ctx.get("when", NOW),
    title=lambda ctx: ctx.get("title", ""),
    body=lambda ctx: ctx.get("body"),
    notification_type=lambda ctx: ctx.get("type", "info"),
    action_url=lambda ctx: ctx.get("actionUrl"),
    data=lambda ctx: ctx.get("data", {}),
)


def custom_in_app_rule() -> Rule:
    return Rule(
        description="Ad-hoc in-app notification for one user",
        recipients=_single("userId"),
        effects=(CUSTOM_IN_APP_EFFECT,),
    )


def custom_in_app_role_rule() -> Rule:
    return Rule(
        description="Ad-hoc in-app notification for every holder of a role",
        recipients=_role_recipients,
        effects=(CUSTOM_IN_APP_EFFECT,),
    )


# ---------------------------------------------------------------------------
# flujo.action.triggered
# ---------------------------------------------------------------------------


def _notification_types(ctx: EventContext) -> list[str]:
    types = ctx.get("notificationTypes")
    if isinstance(types, str):
        types = [types]
    return list(types) if types else ["in_app"]


def flujo_action_rule() -> Rule:
    """A scheduled flow action: in-app and/or email at ``executeAt``.

    ``notificationTypes`` picks the channels (``"in_app"`` when absent).
    The linked ``executionId`` is closed once the batch finishes.
    """

    def data(ctx: EventContext) -> dict[str, Any]:
        return {
            "obraId": ctx.get("obraId"),
            "flujoActionId": ctx.get("actionId"),
            "executionId": ctx.execution_id,
        }

    return Rule(
        description="Scheduled flow action reminder",
        recipients=_single("recipientId"),
        effects=(
            EffectDefinition(
                channel=Channel.IN_APP,
                when=lambda ctx: ctx.get("executeAt", NOW),
                title=lambda ctx: ctx.get("title", ""),
                body=lambda ctx: ctx.get("message"),
                action_url=lambda ctx: _obra_link(ctx.get("obraId")),
                data=data,
                notification_type="flujo",
                guard=lambda ctx: "in_app" in _notification_types(ctx),
            ),
            EffectDefinition(
                channel=Channel.EMAIL,
                when=lambda ctx: ctx.get("executeAt", NOW),
                subject=lambda ctx: ctx.get("title"),
                title=lambda ctx: ctx.get("title"),
                body=lambda ctx: ctx.get("message"),
                guard=lambda ctx: "email" in _notification_types(ctx),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Registry assembly
# ---------------------------------------------------------------------------


def default_rules(
    *,
    clock: Callable[[], datetime] = utc_now,
    follow_up: timedelta = DEFAULT_FOLLOW_UP,
) -> Iterable[tuple[str, Rule]]:
    return [
        (OBRA_COMPLETED, obra_completed_rule(clock=clock, follow_up=follow_up)),
        (DOCUMENT_REMINDER_REQUESTED, document_reminder_rule()),
        (CUSTOM_IN_APP, custom_in_app_rule()),
        (CUSTOM_IN_APP_ROLE, custom_in_app_role_rule()),
        (FLUJO_ACTION_TRIGGERED, flujo_action_rule()),
    ]


def build_default_registry(
    *,
    clock: Callable[[], datetime] = utc_now,
    follow_up: timedelta = DEFAULT_FOLLOW_UP,
) -> RuleRegistry:
    """Return the frozen registry of every built-in rule."""
    return RuleRegistry.from_definitions(default_rules(clock=clock, follow_up=follow_up))
