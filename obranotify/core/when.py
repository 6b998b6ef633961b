"""Delivery-time resolution for effect definitions.

``when`` may be ``"now"``, ``None``, an instant, or a function of the
context returning one of those.  The result is either ``None`` (deliver
immediately) or a timezone-aware UTC instant strictly in the future.
Unusable input is never an error: it degrades to immediate delivery.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any

from obranotify.models.context import EventContext
from obranotify.models.rules import FromContext, Static

logger = logging.getLogger(__name__)

NOW = "now"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_when(value: Any, ctx: EventContext, now: datetime) -> datetime | None:
    """Resolve a ``when`` rule against *ctx*.

    Returns ``None`` for immediate delivery, otherwise the future instant
    the delivery must be suspended until.
    """
    if isinstance(value, (Static, FromContext)):
        value = value.resolve(ctx)
    elif callable(value):
        value = value(ctx)

    instant = coerce_instant(value)
    if instant is None or instant <= as_utc(now):
        return None
    return instant


def coerce_instant(value: Any) -> datetime | None:
    """Turn a resolved ``when`` value into a UTC instant, or ``None``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        return _parse_instant(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug("Epoch value %r out of range; delivering now", value)
            return None

    logger.warning("Unsupported when value %r; delivering now", value)
    return None


def _parse_instant(text: str) -> datetime | None:
    text = text.strip()
    if not text or text.lower() == NOW:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        logger.debug("Unparseable when value %r; delivering now", text)
        return None
