"""Reminder scheduling on top of the in-app helpers.

A reminder is one target date plus a set of offsets; each offset becomes
one in-app notification scheduled relative to the target date, for a
single user or for every holder of a role.  Only the in-app channel is
produced.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from obranotify.api import (
    InAppNotificationInput,
    RoleNotificationInput,
    notify_in_app,
    notify_in_app_for_role,
)
from obranotify.core.engine import NotificationEngine
from obranotify.core.when import as_utc
from obranotify.models.rules import Channel

logger = logging.getLogger(__name__)


class AtDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["at-date"] = "at-date"


class DaysBefore(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["days-before"] = "days-before"
    days: int = Field(ge=0)


Offset = Annotated[Union[AtDate, DaysBefore], Field(discriminator="type")]


class UserTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["user"] = "user"
    user_id: str


class RoleTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["role"] = "role"
    tenant_id: str
    role_key: str


Target = Annotated[Union[UserTarget, RoleTarget], Field(discriminator="type")]


class ReminderInput(BaseModel):
    """What to remind, when (relative to ``target_date``) and whom."""

    model_config = ConfigDict(frozen=True)

    target_date: datetime
    offsets: tuple[Offset, ...]
    channels: tuple[Channel, ...] = (Channel.IN_APP,)
    target: Target
    title: str
    body: str | None = None
    action_url: str | None = None
    tenant_id: str | None = None
    data: dict[str, Any] = {}


def compute_when(target_date: datetime, offset: AtDate | DaysBefore) -> datetime:
    """Delivery instant of *offset*, relative to *target_date*."""
    if isinstance(offset, DaysBefore):
        return target_date - timedelta(days=offset.days)
    return target_date


def create_reminder(engine: NotificationEngine, reminder: ReminderInput) -> list[str]:
    """Schedule one notification per offset; return the started run ids.

    Offsets whose instant is already past deliver immediately.
    """
    if Channel.IN_APP not in reminder.channels:
        logger.info("Reminder %r requests no in-app channel; nothing scheduled", reminder.title)
        return []

    target_date = as_utc(reminder.target_date)
    data = {**reminder.data, "reminderTargetDate": target_date.isoformat()}
    run_ids: list[str] = []
    for offset in reminder.offsets:
        when = compute_when(target_date, offset)
        target = reminder.target
        if isinstance(target, UserTarget):
            run_id = notify_in_app(
                engine,
                InAppNotificationInput(
                    user_id=target.user_id,
                    tenant_id=reminder.tenant_id,
                    title=reminder.title,
                    body=reminder.body,
                    action_url=reminder.action_url,
                    data=data,
                    when=when,
                ),
            )
        else:
            run_id = notify_in_app_for_role(
                engine,
                RoleNotificationInput(
                    role_key=target.role_key,
                    tenant_id=target.tenant_id,
                    title=reminder.title,
                    body=reminder.body,
                    action_url=reminder.action_url,
                    data=data,
                    when=when,
                ),
            )
        if run_id is not None:
            run_ids.append(run_id)
    return run_ids
