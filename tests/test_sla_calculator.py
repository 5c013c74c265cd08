"""Tests for session SLA classification, progress bars and escalation rules."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from itsm_portal.config import EscalationRisk, SLAStatus, TriggerCondition
from itsm_portal.remote_sessions.domain import (
    EscalationPolicy,
    EscalationRule,
    SessionSLACalculator,
    TimingEvent,
)

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _events(*response_times):
    return [
        TimingEvent(id=str(i), session_id="s-1", event_type="response", response_time_seconds=rt)
        for i, rt in enumerate(response_times)
    ]


def _metrics(duration=0, avg_response=0.0, last_activity_at=None):
    started = NOW - timedelta(seconds=duration)
    events = _events(avg_response) if avg_response else []
    return SessionSLACalculator.calculate(
        "s-1", events, started, message_count=0, now=NOW, last_activity_at=last_activity_at
    )


class TestClassification:

    def test_no_events_is_low_risk(self):
        metrics = SessionSLACalculator.calculate("s-1", [], NOW, 0, NOW)

        assert metrics.avg_response_time == 0.0
        assert metrics.total_duration == 0
        assert metrics.escalation_risk == EscalationRisk.LOW
        assert metrics.sla_status == SLAStatus.ON_TRACK

    def test_not_started_has_zero_duration(self):
        metrics = SessionSLACalculator.calculate("s-1", [], None, 3, NOW)
        assert metrics.total_duration == 0
        assert metrics.message_count == 3

    def test_duration_over_thirty_minutes_is_violated(self):
        metrics = _metrics(duration=1801)
        assert metrics.escalation_risk == EscalationRisk.HIGH
        assert metrics.sla_status == SLAStatus.VIOLATED

    def test_boundaries_are_strict(self):
        assert _metrics(duration=1800).sla_status == SLAStatus.AT_RISK
        assert _metrics(duration=1200).sla_status == SLAStatus.ON_TRACK
        assert _metrics(avg_response=300).sla_status == SLAStatus.AT_RISK
        assert _metrics(avg_response=180).sla_status == SLAStatus.ON_TRACK

    def test_slow_average_response_is_medium(self):
        metrics = _metrics(avg_response=181)
        assert metrics.escalation_risk == EscalationRisk.MEDIUM
        assert metrics.sla_status == SLAStatus.AT_RISK

    def test_average_ignores_missing_and_zero_samples(self):
        events = _events(120, None, 0, 240)
        assert SessionSLACalculator.average_response_time(events) == 180.0


class TestProgress:

    def test_progress_caps_at_one_hundred(self):
        metrics = _metrics(duration=4000, avg_response=900)
        assert metrics.duration_progress == 100.0
        assert metrics.response_progress == 100.0

    def test_response_bar_fills_at_medium_band(self):
        duration_progress, response_progress = SessionSLACalculator.progress(900, 90)
        assert duration_progress == 50.0
        assert response_progress == 50.0


class TestEscalationRules:

    def test_duration_rule_uses_whole_minutes(self):
        rule = EscalationRule(
            name="long",
            trigger_condition=TriggerCondition.SESSION_DURATION_EXCEEDED,
            threshold_minutes=30,
        )
        # 30m59s floors to 30, not strictly above the threshold
        assert not rule.is_triggered(_metrics(duration=30 * 60 + 59), NOW)
        assert rule.is_triggered(_metrics(duration=31 * 60), NOW)

    def test_response_rule(self):
        rule = EscalationRule(
            name="slow",
            trigger_condition=TriggerCondition.RESPONSE_TIME_EXCEEDED,
            threshold_minutes=5,
        )
        assert not rule.is_triggered(_metrics(avg_response=359), NOW)
        assert rule.is_triggered(_metrics(avg_response=360), NOW)

    def test_inactivity_needs_a_message(self):
        rule = EscalationRule(
            name="idle",
            trigger_condition=TriggerCondition.USER_INACTIVITY,
            threshold_minutes=10,
        )
        assert not rule.is_triggered(_metrics(), NOW)
        assert rule.is_triggered(_metrics(last_activity_at=NOW - timedelta(minutes=11)), NOW)
        assert not rule.is_triggered(_metrics(last_activity_at=NOW - timedelta(minutes=10)), NOW)

    def test_policy_skips_inactive_rules_and_sorts(self):
        policy = EscalationPolicy(rules=[
            {"name": "b", "trigger_condition": "session_duration_exceeded", "threshold_minutes": 20},
            {"name": "a", "trigger_condition": "session_duration_exceeded", "threshold_minutes": 5},
            {"name": "off", "trigger_condition": "session_duration_exceeded",
             "threshold_minutes": 1, "is_active": False},
        ])

        assert [r.name for r in policy.active_rules()] == ["a", "b"]
        assert [r.name for r in policy.evaluate(_metrics(duration=10 * 60 + 60), NOW)] == ["a"]

    def test_unknown_trigger_condition_rejected(self):
        with pytest.raises(ValidationError):
            EscalationRule(name="x", trigger_condition="cpu_usage", threshold_minutes=1)
