"""Rule and effect-definition models.

Every templated field of an :class:`EffectDefinition` is a tagged union:
either a :class:`Static` value or a :class:`FromContext` pure function of
the :class:`~obranotify.models.context.EventContext`.  Raw values and
callables are coerced into one of the two at construction, so the expander
never has to guess which shape it is holding.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, field_validator

from obranotify.models.context import EventContext


class Channel(str, Enum):
    """Delivery channels an effect can target."""

    IN_APP = "in-app"
    EMAIL = "email"


class Static(BaseModel):
    """A template that always yields the same value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    value: Any = None

    def resolve(self, ctx: EventContext) -> Any:
        return self.value


class FromContext(BaseModel):
    """A template computed from the event context."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["context"] = "context"
    fn: Callable[[EventContext], Any]

    def resolve(self, ctx: EventContext) -> Any:
        return self.fn(ctx)


Template = Union[Static, FromContext]


def as_template(value: Any) -> Template:
    """Coerce a raw value or callable into a :data:`Template`."""
    if isinstance(value, (Static, FromContext)):
        return value
    if callable(value):
        return FromContext(fn=value)
    return Static(value=value)


_TEMPLATE_FIELDS = (
    "when",
    "title",
    "body",
    "subject",
    "html",
    "action_url",
    "data",
    "notification_type",
    "guard",
)


class EffectDefinition(BaseModel):
    """Declares one effect a rule produces for every recipient.

    ``when`` accepts ``"now"``, ``None``, a datetime (or ISO-8601 string),
    or a function of the context returning one of those.  ``guard``
    defaults to true; an effect whose guard resolves false is dropped
    before the batch is scheduled.
    """

    model_config = ConfigDict(frozen=True)

    channel: Channel
    when: Template = Static(value="now")
    title: Template | None = None
    body: Template | None = None
    subject: Template | None = None
    html: Template | None = None
    action_url: Template | None = None
    data: Template | None = None
    notification_type: Template | None = None
    guard: Template | None = None

    @field_validator(*_TEMPLATE_FIELDS, mode="before")
    @classmethod
    def _coerce_template(cls, value: Any) -> Template:
        return as_template(value)

    def render(self, field: str, ctx: EventContext, default: Any = None) -> Any:
        """Resolve the template stored in *field*, falling back to *default*."""
        template: Template | None = getattr(self, field)
        if template is None:
            return default
        value = template.resolve(ctx)
        return default if value is None else value


class Rule(BaseModel):
    """How to find recipients for an event type and what to send them.

    ``recipients`` returns recipient tokens: literal user ids or
    ``"role:<roleKey>"`` group tokens expanded at emission time.
    """

    model_config = ConfigDict(frozen=True)

    recipients: Callable[[EventContext], Iterable[str]]
    effects: tuple[EffectDefinition, ...] = ()
    description: str = ""
