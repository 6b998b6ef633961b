"""High-level helpers for server code.

``emit_domain_event`` is the main entry point.  The ``notify_*`` helpers
send ad-hoc in-app notifications through the same rule-backed pipeline
(``custom.in_app`` and ``custom.in_app.role``).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict

from obranotify.core.engine import NotificationEngine
from obranotify.models.context import EventContext
from obranotify.rules.catalog import CUSTOM_IN_APP, CUSTOM_IN_APP_ROLE

When = Union[Literal["now"], datetime]


class InAppNotificationInput(BaseModel):
    """An in-app notification for one user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    title: str
    tenant_id: str | None = None
    body: str | None = None
    type: str = "info"
    action_url: str | None = None
    data: dict[str, Any] = {}
    pendiente_id: str | None = None
    when: When = "now"


class RoleNotificationInput(BaseModel):
    """An in-app notification for every user holding ``role_key`` in the tenant."""

    model_config = ConfigDict(frozen=True)

    role_key: str
    title: str
    tenant_id: str | None = None
    body: str | None = None
    type: str = "info"
    action_url: str | None = None
    data: dict[str, Any] = {}
    pendiente_id: str | None = None
    when: When = "now"


def emit_domain_event(
    engine: NotificationEngine,
    event_type: str,
    ctx: EventContext | Mapping[str, Any] | None = None,
) -> str | None:
    """Emit a domain event handled by the registered rules."""
    return engine.emit(event_type, ctx)


def _common_context(
    notification: InAppNotificationInput | RoleNotificationInput,
) -> dict[str, Any]:
    return {
        "tenantId": notification.tenant_id,
        "actorId": None,
        "title": notification.title,
        "body": notification.body,
        "type": notification.type,
        "actionUrl": notification.action_url,
        "data": dict(notification.data),
        "pendienteId": notification.pendiente_id,
        "when": notification.when,
    }


def notify_in_app(
    engine: NotificationEngine, notification: InAppNotificationInput
) -> str | None:
    ctx = {**_common_context(notification), "userId": notification.user_id}
    return emit_domain_event(engine, CUSTOM_IN_APP, ctx)


def notify_in_app_for_role(
    engine: NotificationEngine, notification: RoleNotificationInput
) -> str | None:
    """Role membership is resolved server-side against the notification's tenant."""
    ctx = {**_common_context(notification), "roleKey": notification.role_key}
    return emit_domain_event(engine, CUSTOM_IN_APP_ROLE, ctx)
