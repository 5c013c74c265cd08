"""Tests for escalation rule loading, Slack alerts and the circuit breaker."""

import json

import httpx
import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from itsm_portal.remote_sessions.infrastructure import (
    ALERT_ESCALATION_RULE,
    ALERT_SLA_VIOLATED,
    CircuitBreaker,
    EscalationRulesManager,
    RulesFileHandler,
    SessionAlert,
    SlackClient,
)

RULES_YAML = """
rules:
  - name: long_running_session
    trigger_condition: session_duration_exceeded
    threshold_minutes: 30
  - name: idle_participant
    trigger_condition: user_inactivity
    threshold_minutes: 10
    is_active: false
"""


def _alert(alert_type=ALERT_SLA_VIOLATED, **kwargs):
    return SessionAlert(
        session_id="s-1",
        alert_type=alert_type,
        escalation_risk="high",
        sla_status="violated",
        total_duration=1860,
        avg_response_time=42.4,
        timestamp="2024-01-15T12:00:00+00:00",
        **kwargs,
    )


class TestEscalationRulesManager:

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(RULES_YAML)

        policy = EscalationRulesManager().load(path)

        assert [r.name for r in policy.rules] == ["long_running_session", "idle_participant"]
        assert [r.name for r in policy.active_rules()] == ["long_running_session"]

    def test_missing_file_means_no_rules(self, tmp_path):
        manager = EscalationRulesManager()
        manager.load(tmp_path / "absent.yaml")
        assert manager.policy.rules == []

    def test_broken_reload_keeps_previous_policy(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(RULES_YAML)
        manager = EscalationRulesManager()
        manager.load(path)

        path.write_text("rules:\n  - name: bad\n    trigger_condition: cpu\n    threshold_minutes: 1\n")

        assert manager.reload() is False
        assert len(manager.policy.rules) == 2
        assert "trigger_condition" in manager.last_error

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(RULES_YAML)
        manager = EscalationRulesManager()
        manager.load(path)

        path.write_text("rules: []\n")

        assert manager.reload() is True
        assert manager.policy.rules == []
        assert manager.reload_count == 1
        assert manager.last_error is None

    def test_rename_onto_rules_file_reloads(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(RULES_YAML)
        manager = EscalationRulesManager()
        manager.load(path)
        handler = RulesFileHandler(manager, path)

        path.write_text("rules: []\n")
        handler.on_moved(FileMovedEvent(str(tmp_path / ".rules.yaml.swp"), str(path)))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "other.yaml")))

        assert manager.reload_count == 1
        assert manager.policy.rules == []

    def test_policy_before_load_raises(self):
        with pytest.raises(RuntimeError):
            EscalationRulesManager().policy


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == "half_open"
        breaker.record_success()
        assert breaker.state == "closed"


class TestSlackClient:

    @pytest.mark.asyncio
    async def test_unconfigured_webhook_skips(self):
        client = SlackClient(webhook_url="")
        assert await client.send_alert(_alert()) is False

    @pytest.mark.asyncio
    async def test_sends_block_message(self):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(200)

        client = SlackClient(
            webhook_url="https://hooks.slack.test/x",
            channel="#support",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await client.send_alert(
            _alert(ALERT_ESCALATION_RULE, rule_name="long", escalation_action="notify_supervisor")
        )
        await client.close()

        message = sent[0]
        assert message["channel"] == "#support"
        assert "long" in message["blocks"][0]["text"]["text"]
        field_texts = [f["text"] for f in message["blocks"][1]["fields"]]
        assert "*Duration:*\n31m" in field_texts
        assert "*Action:*\nnotify_supervisor" in field_texts

    @pytest.mark.asyncio
    async def test_failures_open_circuit(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = SlackClient(
            webhook_url="https://hooks.slack.test/x",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        for _ in range(5):
            assert await client.send_alert(_alert(), max_retries=1) is False
        assert client.circuit_breaker.state == "open"

        assert await client.send_alert(_alert(), max_retries=1) is False
        assert len(calls) == 5
