"""Rule registry — event-type name to :class:`Rule`.

Rules are registered while the process starts up, then the registry is
frozen and handed to the engine.  After :meth:`RuleRegistry.freeze` the
backing map is read-only, so concurrent lookups during emission need no
locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from obranotify.models.rules import Rule

logger = logging.getLogger(__name__)


class RegistryFrozenError(RuntimeError):
    """Raised when registering into a registry that has been frozen."""


class RuleRegistry:
    """Maps event types to rules.

    Re-registering an event type replaces the previous rule (no merge).

    Usage
    -----
    >>> registry = RuleRegistry()
    >>> registry.register("obra.completed", rule)
    >>> registry = registry.freeze()
    >>> registry.lookup("obra.completed") is rule
    True
    """

    def __init__(self, rules: Mapping[str, Rule] | None = None) -> None:
        self._rules: Mapping[str, Rule] = dict(rules or {})
        self._frozen = False

    @classmethod
    def from_definitions(
        cls, definitions: Iterable[tuple[str, Rule]]
    ) -> RuleRegistry:
        """Build a frozen registry from ``(event_type, rule)`` pairs."""
        registry = cls()
        for event_type, rule in definitions:
            registry.register(event_type, rule)
        return registry.freeze()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, event_type: str, rule: Rule) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {event_type!r}: the rule registry is frozen."
            )
        if event_type in self._rules:
            logger.info("Replacing rule for event type %s", event_type)
        self._rules[event_type] = rule  # type: ignore[index]

    def freeze(self) -> RuleRegistry:
        """Make the registry read-only. Idempotent; returns ``self``."""
        if not self._frozen:
            self._rules = MappingProxyType(dict(self._rules))
            self._frozen = True
            logger.debug("Rule registry frozen with %d rule(s)", len(self._rules))
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, event_type: str) -> Rule | None:
        return self._rules.get(event_type)

    def event_types(self) -> list[str]:
        return sorted(self._rules)

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._rules

    def __len__(self) -> int:
        return len(self._rules)
