"""Tests for delivery-time resolution."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from obranotify.core.when import coerce_instant, resolve_when
from obranotify.models.context import EventContext
from obranotify.models.rules import FromContext, Static

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
CTX = EventContext(tenant_id="t1")


class TestImmediate:
    @pytest.mark.parametrize("value", [None, "now", "NOW", "", Static(value="now")])
    def test_now_like_values(self, value):
        assert resolve_when(value, CTX, NOW) is None

    def test_past_instant_is_immediate(self):
        assert resolve_when(NOW - timedelta(seconds=1), CTX, NOW) is None

    def test_exactly_now_is_immediate(self):
        assert resolve_when(NOW, CTX, NOW) is None

    def test_unparseable_string_is_immediate(self):
        assert resolve_when("next tuesday", CTX, NOW) is None

    def test_unsupported_type_is_immediate(self):
        assert resolve_when(object(), CTX, NOW) is None
        assert resolve_when(True, CTX, NOW) is None
        assert resolve_when(float("nan"), CTX, NOW) is None


class TestFuture:
    def test_future_instant_kept_exactly(self):
        at = NOW + timedelta(minutes=2)
        assert resolve_when(at, CTX, NOW) == at

    def test_naive_datetime_read_as_utc(self):
        naive = datetime(2025, 3, 11, 9, 0)
        assert resolve_when(naive, CTX, NOW) == datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc)

    def test_other_offsets_converted_to_utc(self):
        at = datetime(2025, 3, 10, 18, 0, tzinfo=timezone(timedelta(hours=3)))
        assert resolve_when(at, CTX, NOW) == datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)

    def test_iso_string_with_z(self):
        assert resolve_when("2025-03-11T09:00:00Z", CTX, NOW) == datetime(
            2025, 3, 11, 9, 0, tzinfo=timezone.utc
        )

    def test_function_of_context(self):
        ctx = EventContext.model_validate({"followUpAt": "2025-03-12T00:00:00+00:00"})
        resolved = resolve_when(lambda c: c.get("followUpAt"), ctx, NOW)
        assert resolved == datetime(2025, 3, 12, tzinfo=timezone.utc)

    def test_from_context_template(self):
        template = FromContext(fn=lambda c: NOW + timedelta(days=10))
        assert resolve_when(template, CTX, NOW) == NOW + timedelta(days=10)

    def test_epoch_seconds(self):
        at = NOW + timedelta(hours=1)
        assert resolve_when(at.timestamp(), CTX, NOW) == at


class TestCoerceInstant:
    def test_date_is_midnight_utc(self):
        assert coerce_instant(date(2025, 4, 1)) == datetime(2025, 4, 1, tzinfo=timezone.utc)

    def test_epoch_zero(self):
        assert coerce_instant(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_out_of_range_epoch(self):
        assert coerce_instant(1e20) is None
