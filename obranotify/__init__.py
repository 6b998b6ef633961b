"""obranotify: event-driven notification and deferred-delivery engine.

Domain events are expanded through declarative rules into per-recipient
effects (in-app notifications, emails) and delivered in order by a
durable, resumable workflow that can sleep until a future instant.
"""

__version__ = "0.1.0"
__description__ = "Event-driven notifications with durable deferred delivery"

from obranotify.core.engine import NotificationEngine
from obranotify.core.registry import RuleRegistry
from obranotify.models.context import EventContext
from obranotify.models.rules import Channel, EffectDefinition, Rule
from obranotify.cli.app import app as cli

__all__ = [
    "Channel",
    "EffectDefinition",
    "EventContext",
    "NotificationEngine",
    "Rule",
    "RuleRegistry",
    "cli",
    "__version__",
]
