"""Effect expansion — one rule, many recipients, many effects.

Given an event type and its context, the expander looks up the rule,
expands recipient tokens through the resolver, evaluates every template of
every effect definition once per recipient, resolves delivery time and
drops effects whose guard is false.  The output order is recipient-major,
effect-minor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from obranotify.core.recipients import RecipientResolver
from obranotify.core.registry import RuleRegistry
from obranotify.core.when import resolve_when, utc_now
from obranotify.models.context import EventContext
from obranotify.models.effects import Effect
from obranotify.models.rules import EffectDefinition

logger = logging.getLogger(__name__)


class EffectExpander:
    """Turns ``(event_type, ctx)`` into a list of concrete effects.

    Parameters
    ----------
    registry:
        Rule lookup.
    resolver:
        Recipient token and contact-address resolution.
    clock:
        Returns the current UTC instant; used to decide whether a resolved
        ``when`` is still in the future.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        resolver: RecipientResolver,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._clock = clock

    def expand(self, event_type: str, ctx: EventContext) -> list[Effect]:
        rule = self._registry.lookup(event_type)
        if rule is None:
            logger.debug("No rule registered for %s; nothing to expand", event_type)
            return []

        tokens = list(rule.recipients(ctx) or [])
        recipient_ids = self._resolver.expand_tokens(tokens, ctx.tenant_id)
        if not recipient_ids:
            logger.debug("Event %s resolved to no recipients", event_type)
            return []

        addresses = {
            user_id: self._resolver.resolve_contact_address(user_id)
            for user_id in recipient_ids
        }
        tagged = ctx.with_event_type(event_type)
        now = self._clock()

        effects: list[Effect] = []
        for user_id in recipient_ids:
            for definition in rule.effects:
                effect = self._materialize(
                    event_type, definition, ctx, tagged, user_id, addresses[user_id], now
                )
                if not effect.should_send:
                    logger.debug(
                        "Guard rejected %s effect of %s for user %s",
                        definition.channel.value,
                        event_type,
                        user_id,
                    )
                    continue
                effects.append(effect)
        return effects

    @staticmethod
    def _materialize(
        event_type: str,
        definition: EffectDefinition,
        ctx: EventContext,
        tagged: EventContext,
        user_id: str,
        address: str | None,
        now: datetime,
    ) -> Effect:
        return Effect(
            event_type=event_type,
            channel=definition.channel,
            deliver_at=resolve_when(definition.when, ctx, now),
            title=_text(definition.render("title", ctx)),
            body=_text(definition.render("body", ctx)),
            subject=_text(definition.render("subject", ctx)),
            html=_text(definition.render("html", ctx)),
            action_url=_text(definition.render("action_url", ctx)),
            data=_mapping(definition.render("data", ctx)),
            notification_type=_text(definition.render("notification_type", ctx)),
            recipient_id=user_id,
            recipient_address=address,
            context=tagged,
            should_send=bool(definition.render("guard", ctx, default=True)),
            execution_id=ctx.execution_id or None,
        )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _mapping(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    logger.warning("Effect data template returned %s, expected a mapping", type(value).__name__)
    return {"value": value}
