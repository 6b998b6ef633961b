"""Tests for the reference channel adapters and directories."""

from __future__ import annotations

import json

import httpx
import pytest

from obranotify.channels import (
    ChannelAdapters,
    EmailSender,
    ExecutionTracker,
    NotificationStore,
)
from obranotify.channels.directory import InMemoryDirectory, SQLiteDirectory
from obranotify.channels.email import (
    BufferedEmailSender,
    EmailDeliveryError,
    ResendEmailSender,
)
from obranotify.channels.sqlite_store import (
    SQLiteExecutionTracker,
    SQLiteNotificationStore,
)
from obranotify.config import NotifyConfig
from obranotify.models.channels import (
    EmailMessage,
    ExecutionStatus,
    ExecutionStatusUpdate,
    NotificationRow,
)

MESSAGE = EmailMessage(to="u1@example.com", subject="Hola", html="<p>hola</p>")


class TestProtocols:
    def test_reference_adapters_satisfy_protocols(self, db_path):
        assert isinstance(SQLiteNotificationStore(db_path), NotificationStore)
        assert isinstance(SQLiteExecutionTracker(db_path), ExecutionTracker)
        assert isinstance(BufferedEmailSender(), EmailSender)
        assert isinstance(ResendEmailSender("", ""), EmailSender)


class TestSQLiteNotificationStore:
    def test_insert_and_list(self, db_path, clock):
        store = SQLiteNotificationStore(db_path, clock=clock)
        store.insert_notification(
            NotificationRow(
                user_id="u1",
                tenant_id="t1",
                title="Obra completada",
                type="success",
                related_entity_id="p1",
                data={"obraId": "o1"},
            )
        )
        store.insert_notification(NotificationRow(user_id="u1", title="Segunda"))
        store.insert_notification(NotificationRow(user_id="u2", title="Otra"))

        rows = store.list_for_user("u1")
        assert [row.title for row in rows] == ["Obra completada", "Segunda"]
        assert rows[0].data == {"obraId": "o1"}
        assert rows[0].related_entity_id == "p1"
        assert rows[1].type == "info"
        assert store.count() == 3


class TestSQLiteExecutionTracker:
    def test_create_is_pending(self, db_path, clock):
        tracker = SQLiteExecutionTracker(db_path, clock=clock)
        execution_id = tracker.create(obra_id="o1", flujo_action_id="a1")
        record = tracker.get(execution_id)
        assert record["status"] is ExecutionStatus.PENDING
        assert record["executed_at"] is None
        assert record["obra_id"] == "o1"

    def test_terminal_status_sets_executed_at(self, db_path, clock):
        tracker = SQLiteExecutionTracker(db_path, clock=clock)
        tracker.create("x1")
        clock.advance(minutes=5)
        tracker.mark_execution_status(
            ExecutionStatusUpdate(id="x1", status=ExecutionStatus.FAILED, error_message="boom")
        )
        record = tracker.get("x1")
        assert record["status"] is ExecutionStatus.FAILED
        assert record["error_message"] == "boom"
        assert record["executed_at"] == clock()

    def test_pending_does_not_set_executed_at(self, db_path, clock):
        tracker = SQLiteExecutionTracker(db_path, clock=clock)
        tracker.create("x1")
        tracker.mark_execution_status(
            ExecutionStatusUpdate(id="x1", status=ExecutionStatus.PENDING)
        )
        assert tracker.get("x1")["executed_at"] is None

    def test_empty_id_is_noop(self, db_path, clock):
        tracker = SQLiteExecutionTracker(db_path, clock=clock)
        tracker.mark_execution_status(
            ExecutionStatusUpdate(id=None, status=ExecutionStatus.COMPLETED)
        )
        tracker.mark_execution_status(
            ExecutionStatusUpdate(id="", status=ExecutionStatus.COMPLETED)
        )

    def test_unknown_execution(self, db_path):
        assert SQLiteExecutionTracker(db_path).get("missing") is None


class TestDirectories:
    def test_in_memory_assign_role(self):
        directory = InMemoryDirectory()
        directory.assign_role("t1", "foreman", "u1")
        directory.assign_role("t1", "foreman", "u1")
        assert directory.get_role_members("foreman", "t1") == ["u1"]
        assert directory.get_role_members("foreman", "t2") == []

    def test_sqlite_directory(self, db_path):
        directory = SQLiteDirectory(db_path)
        directory.upsert_user("u1", "u1@example.com")
        directory.assign_role("t1", "foreman", "u2")
        directory.assign_role("t1", "foreman", "u3")
        directory.assign_role("t2", "foreman", "u1")

        assert directory.get_contact_address("u1") == "u1@example.com"
        assert directory.get_contact_address("u2") is None
        assert directory.get_contact_address("nobody") is None
        assert directory.get_role_members("foreman", "t1") == ["u2", "u3"]
        assert directory.get_role_members("foreman", "t2") == ["u1"]
        assert directory.get_role_members("admin", "t1") == []

    def test_sqlite_upsert_updates_email(self, db_path):
        directory = SQLiteDirectory(db_path)
        directory.upsert_user("u1", "old@example.com")
        directory.upsert_user("u1", "new@example.com")
        assert directory.get_contact_address("u1") == "new@example.com"


class TestBufferedEmailSender:
    def test_flush_returns_and_clears(self):
        sender = BufferedEmailSender()
        sender.send_email(MESSAGE)
        assert sender.pending_count == 1
        assert sender.flush() == [MESSAGE]
        assert sender.pending_count == 0


def _resend(handler, **kwargs) -> ResendEmailSender:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ResendEmailSender("re_key", "avisos@example.com", client=client, **kwargs)


class TestResendEmailSender:
    def test_posts_payload_with_bearer(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        _resend(handler).send_email(MESSAGE)

        (request,) = seen
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_key"
        assert json.loads(request.content) == {
            "from": "avisos@example.com",
            "to": "u1@example.com",
            "subject": "Hola",
            "html": "<p>hola</p>",
        }

    def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, text="invalid to")

        with pytest.raises(EmailDeliveryError, match="422"):
            _resend(handler).send_email(MESSAGE)

    def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(EmailDeliveryError, match="unreachable"):
            _resend(handler).send_email(MESSAGE)

    def test_unconfigured_skips(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("must not be called")

        client = httpx.Client(transport=httpx.MockTransport(handler))
        sender = ResendEmailSender("", "avisos@example.com", client=client)
        assert not sender.is_configured
        sender.send_email(MESSAGE)

    def test_from_config(self):
        cfg = NotifyConfig(
            resend_api_key="re_cfg",
            resend_from_email="a@example.com",
            resend_api_base="https://mail.internal/send",
        )
        sender = ResendEmailSender.from_config(cfg)
        assert sender.is_configured
        sender.close()


class TestChannelAdaptersClose:
    def test_close_releases_email_client(self, db_path, clock):
        client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        sender = ResendEmailSender("re_key", "avisos@example.com", client=client)
        adapters = ChannelAdapters(
            notifications=SQLiteNotificationStore(db_path, clock=clock),
            email=sender,
            executions=SQLiteExecutionTracker(db_path, clock=clock),
        )
        adapters.close()
        assert client.is_closed
