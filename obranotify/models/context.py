"""Event context — the open key/value bag handed to every rule template.

A context is built once per emission and is frozen from then on.  The
well-known keys (``tenantId``, ``actorId``, ``executionId``, ``eventType``)
are typed fields; any other event-specific key (``obra``, ``dueDate``,
``roleKey``...) rides along as a pydantic extra.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventContext(BaseModel):
    """Immutable context for a single emission.

    Keys may be given with their wire names (``tenantId``) or with the
    attribute names (``tenant_id``).  Templates read values through
    :meth:`get`, which treats a stored ``None`` like a missing key.

    Examples
    --------
    >>> ctx = EventContext.model_validate({"tenantId": "t1", "obraId": "o1"})
    >>> ctx.tenant_id
    't1'
    >>> ctx.get("obraId")
    'o1'
    >>> ctx.get("missing", "fallback")
    'fallback'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    tenant_id: str | None = Field(default=None, alias="tenantId")
    actor_id: str | None = Field(default=None, alias="actorId")
    execution_id: str | None = Field(default=None, alias="executionId")
    event_type: str | None = Field(default=None, alias="eventType")

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key* (wire or attribute name)."""
        name = _FIELD_BY_ALIAS.get(key, key)
        if name in _FIELD_NAMES:
            value = getattr(self, name)
        else:
            value = (self.model_extra or {}).get(key)
        return default if value is None else value

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def with_event_type(self, event_type: str) -> EventContext:
        """Return a copy tagged with the originating event type."""
        return self.model_copy(update={"event_type": event_type})

    def to_dict(self) -> dict[str, Any]:
        """Plain dict using the wire names, suitable for JSON."""
        return self.model_dump(mode="json", by_alias=True)


_FIELD_NAMES = frozenset(EventContext.model_fields)
_FIELD_BY_ALIAS = {
    info.alias: name
    for name, info in EventContext.model_fields.items()
    if info.alias
}
