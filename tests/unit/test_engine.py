"""Tests for the NotificationEngine — emission end to end on test runtimes."""

from __future__ import annotations

from datetime import timedelta

from obranotify.channels import ChannelAdapters
from obranotify.core.engine import NotificationEngine
from obranotify.core.registry import RuleRegistry
from obranotify.models.channels import EmailMessage, ExecutionStatus
from obranotify.models.context import EventContext
from obranotify.models.rules import Channel, EffectDefinition, Rule
from obranotify.models.workflow import RunStatus


class _FailingEmail:
    def send_email(self, message: EmailMessage) -> None:
        raise ConnectionError("resend unreachable")


class TestScenarios:
    def test_obra_completed(self, engine, adapters, runtime, clock):
        ctx = {"actorId": "u1", "obra": {"id": "o1", "name": "Hospital"}}

        effects = engine.expand("obra.completed", ctx)
        assert [(e.recipient_id, e.channel) for e in effects] == [
            ("u1", Channel.IN_APP),
            ("u1", Channel.EMAIL),
        ]

        run_id = engine.emit("obra.completed", ctx)
        assert run_id is not None
        assert [kind for kind, _ in adapters.calls] == ["in-app", "email"]
        assert adapters.notifications.rows[0].title == "Obra completada"
        assert runtime.suspensions == [(run_id, clock() + timedelta(minutes=2))]
        (message,) = adapters.email.sent
        assert message.to == "u1@example.com"
        assert message.subject == "Seguimiento: Hospital"

    def test_custom_in_app_role(self, engine, adapters, runtime):
        run_id = engine.emit(
            "custom.in_app.role", {"roleKey": "foreman", "tenantId": "t1", "title": "X"}
        )
        assert run_id is not None
        rows = adapters.notifications.rows
        assert [row.user_id for row in rows] == ["u2", "u3"]
        assert {row.title for row in rows} == {"X"}
        assert runtime.suspensions == []


class TestEmit:
    def test_unregistered_event_is_noop(self, engine, adapters, runtime):
        assert engine.emit("nope.nothing", {"actorId": "u1"}) is None
        assert runtime.runs == {}
        assert adapters.calls == []

    def test_no_recipients_is_noop(self, engine, runtime):
        assert engine.emit("obra.completed", {"obra": {"name": "x"}}) is None
        assert runtime.runs == {}

    def test_accepts_event_context(self, engine, adapters, make_context):
        engine.emit("custom.in_app", make_context(userId="u3", title="Hola"))
        (row,) = adapters.notifications.rows
        assert (row.user_id, row.tenant_id, row.title) == ("u3", "t1", "Hola")

    def test_one_run_per_emit(self, engine, runtime):
        engine.emit("custom.in_app", {"userId": "u1", "title": "a"})
        engine.emit("custom.in_app", {"userId": "u2", "title": "b"})
        assert len(runtime.runs) == 2
        assert all(run.status is RunStatus.COMPLETED for run in runtime.runs.values())

    def test_guarded_effects_never_suspend(self, engine, adapters, runtime, clock):
        run_id = engine.emit(
            "flujo.action.triggered",
            {
                "recipientId": "u1",
                "title": "Revisar",
                "executeAt": (clock() + timedelta(days=3)).isoformat(),
                "notificationTypes": ["in_app"],
            },
        )
        assert runtime.suspensions == [(run_id, clock() + timedelta(days=3))]
        assert [kind for kind, _ in adapters.calls] == ["in-app"]

    def test_execution_marked_completed_once(self, engine, adapters):
        engine.emit(
            "flujo.action.triggered",
            {
                "recipientId": "u1",
                "title": "Revisar",
                "notificationTypes": ["in_app", "email"],
                "executionId": "x1",
            },
        )
        assert [kind for kind, _ in adapters.calls] == ["in-app", "email", "execution"]
        (update,) = adapters.executions.updates
        assert (update.id, update.status) == ("x1", ExecutionStatus.COMPLETED)

    def test_registry_frozen_by_engine(self, resolver, runtime, adapters):
        registry = RuleRegistry()
        NotificationEngine(registry, resolver, runtime, adapters=adapters)
        assert registry.is_frozen

    def test_close_releases_adapters(self, resolver, runtime, adapters, monkeypatch):
        closed: list[str] = []
        monkeypatch.setattr(adapters.email, "close", lambda: closed.append("email"), raising=False)
        engine = NotificationEngine(RuleRegistry(), resolver, runtime, adapters=adapters)
        engine.close()
        assert closed == ["email"]

    def test_close_without_adapters(self, resolver, runtime):
        NotificationEngine(RuleRegistry(), resolver, runtime).close()


def _ordered_rule(first: EffectDefinition, second: EffectDefinition) -> RuleRegistry:
    return RuleRegistry.from_definitions(
        [("ordered", Rule(recipients=lambda ctx: ["u1"], effects=(first, second)))]
    )


class TestBatchSemantics:
    def test_sequential_blocking(self, resolver, sqlite_runtime, adapters, clock):
        registry = _ordered_rule(
            EffectDefinition(channel="in-app", title="later", when=clock() + timedelta(days=10)),
            EffectDefinition(channel="in-app", title="now"),
        )
        engine = NotificationEngine(
            registry, resolver, sqlite_runtime, adapters=adapters, clock=clock
        )
        run_id = engine.emit("ordered", {"tenantId": "t1"})

        assert adapters.notifications.rows == []
        assert sqlite_runtime.get_run(run_id).status is RunStatus.SLEEPING

        clock.advance(days=9)
        sqlite_runtime.tick()
        assert adapters.notifications.rows == []

        clock.advance(days=1)
        sqlite_runtime.tick()
        assert [row.title for row in adapters.notifications.rows] == ["later", "now"]
        assert sqlite_runtime.get_run(run_id).status is RunStatus.COMPLETED

    def test_failure_stops_rest_of_batch(self, resolver, runtime, adapters, clock):
        registry = _ordered_rule(
            EffectDefinition(channel="email", subject="first"),
            EffectDefinition(channel="in-app", title="second"),
        )
        engine = NotificationEngine(
            registry,
            resolver,
            runtime,
            adapters=ChannelAdapters(adapters.notifications, _FailingEmail(), adapters.executions),
            clock=clock,
        )
        run_id = engine.emit("ordered", EventContext.model_validate({"executionId": "x9"}))

        assert adapters.notifications.rows == []
        (update,) = adapters.executions.updates
        assert update.status is ExecutionStatus.FAILED
        assert update.error_message == "resend unreachable"
        assert runtime.runs[run_id].status is RunStatus.FAILED
