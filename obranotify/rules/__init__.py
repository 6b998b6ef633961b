"""Built-in notification rules."""

from obranotify.rules.catalog import (
    CUSTOM_IN_APP,
    CUSTOM_IN_APP_ROLE,
    DOCUMENT_REMINDER_REQUESTED,
    FLUJO_ACTION_TRIGGERED,
    OBRA_COMPLETED,
    build_default_registry,
    default_rules,
)

__all__ = [
    "CUSTOM_IN_APP",
    "CUSTOM_IN_APP_ROLE",
    "DOCUMENT_REMINDER_REQUESTED",
    "FLUJO_ACTION_TRIGGERED",
    "OBRA_COMPLETED",
    "build_default_registry",
    "default_rules",
]
