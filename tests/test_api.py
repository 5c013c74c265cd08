"""Integration tests over the HTTP interface."""

from unittest.mock import AsyncMock

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from itsm_portal.core import ExternalServiceException

TECH = {"X-User-ID": "tech-1"}
USER = {"X-User-ID": "user-9"}


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_checks(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["escalation_rules"] == "0 active"
        assert body["checks"]["email_function"] == "not_configured"

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, client):
        response = await client.get("/", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"


class TestIncidentsAPI:

    @pytest.mark.asyncio
    async def test_requires_user_header(self, client):
        response = await client.get("/incidents")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_fields_are_422(self, client):
        response = await client.post("/incidents", json={"title": "VPN"}, headers=USER)

        assert response.status_code == 422
        assert response.json()["details"]["missing"] == ["description", "priority"]

    @pytest.mark.asyncio
    async def test_incident_lifecycle(self, client):
        created = await client.post(
            "/incidents",
            json={"title": "VPN down", "description": "No tunnel", "priority": "critical"},
            headers=USER,
        )
        assert created.status_code == 201
        incident = created.json()
        assert incident["status"] == "Open"
        assert incident["category"] == "General"

        progressed = await client.patch(
            f"/incidents/{incident['id']}/status",
            json={"status": "In Progress", "assignee": "tech-1"},
            headers=TECH,
        )
        assert progressed.status_code == 200
        assert progressed.json()["first_response_at"] is not None

        resolved = await client.post(f"/incidents/{incident['id']}/resolve", headers=TECH)
        assert resolved.json()["status"] == "Resolved"

        closed = await client.patch(
            f"/incidents/{incident['id']}/status", json={"status": "Closed"}, headers=TECH
        )
        assert closed.status_code == 200

        illegal = await client.patch(
            f"/incidents/{incident['id']}/status", json={"status": "Resolved"}, headers=TECH
        )
        assert illegal.status_code == 409

        stats = (await client.get("/incidents/stats", headers=USER)).json()
        assert stats["critical"] == 1
        assert stats["open"] == 0

        listed = (await client.get("/incidents", headers=USER)).json()
        assert [i["id"] for i in listed] == [incident["id"]]

    @pytest.mark.asyncio
    async def test_feedback(self, client):
        incident = (await client.post(
            "/incidents",
            json={"title": "Mouse", "description": "Broken", "priority": "low"},
            headers=USER,
        )).json()

        forbidden = await client.post(
            f"/incidents/{incident['id']}/feedback", json={"satisfaction_rating": 5}, headers=TECH
        )
        assert forbidden.status_code == 403

        recorded = await client.post(
            f"/incidents/{incident['id']}/feedback", json={"satisfaction_rating": 5}, headers=USER
        )
        assert recorded.status_code == 201

        duplicate = await client.post(
            f"/incidents/{incident['id']}/feedback", json={"satisfaction_rating": 4}, headers=USER
        )
        assert duplicate.status_code == 409

        exists = (await client.get(f"/incidents/{incident['id']}/feedback", headers=USER)).json()
        assert exists["exists"] is True

    @pytest.mark.asyncio
    async def test_resolution_stats(self, client):
        incident = (await client.post(
            "/incidents",
            json={"title": "Printer", "description": "Jammed", "priority": "low"},
            headers=USER,
        )).json()

        resolved = await client.post(
            f"/incidents/{incident['id']}/resolve",
            json={"resolution_method": "escalated"},
            headers=TECH,
        )
        assert resolved.status_code == 200

        bad = await client.post(
            f"/incidents/{incident['id']}/resolve",
            json={"resolution_method": "magic"},
            headers=TECH,
        )
        assert bad.status_code == 422

        await client.post(
            f"/incidents/{incident['id']}/feedback", json={"satisfaction_rating": 3}, headers=USER
        )

        records = (await client.get(
            f"/incidents/{incident['id']}/resolution-stats", headers=TECH
        )).json()
        assert len(records) == 1
        assert records[0]["resolution_method"] == "escalated"
        assert records[0]["user_satisfaction_score"] == 3

    @pytest.mark.asyncio
    async def test_unknown_incident_is_404(self, client):
        response = await client.get("/incidents/not-a-uuid", headers=USER)
        assert response.status_code == 404


class TestRemoteSessionsAPI:

    async def _active(self, client):
        created = await client.post(
            "/remote-sessions",
            json={"target_user_id": "user-9", "purpose": "Install VPN client"},
            headers=TECH,
        )
        assert created.status_code == 201
        session_id = created.json()["id"]

        denied = await client.post(f"/remote-sessions/{session_id}/approve", headers=TECH)
        assert denied.status_code == 403

        approved = await client.post(
            f"/remote-sessions/{session_id}/approve", json={"notes": "ok"}, headers=USER
        )
        assert approved.json()["status"] == "approved"

        started = await client.post(f"/remote-sessions/{session_id}/start", headers=TECH)
        assert started.json()["status"] == "active"
        return session_id

    @pytest.mark.asyncio
    async def test_session_chat_and_notifications(self, client):
        session_id = await self._active(client)

        posted = await client.post(
            f"/remote-sessions/{session_id}/messages",
            json={"message_content": "Please open the settings app"},
            headers=TECH,
        )
        assert posted.status_code == 201
        assert posted.json()["sender_type"] == "requester"

        unread = (await client.get("/notifications/unread", headers=USER)).json()
        assert len(unread) == 1
        assert unread[0]["session_id"] == session_id
        assert (await client.get("/notifications/unread", headers=TECH)).json() == []

        wrong_owner = await client.post(f"/notifications/{unread[0]['id']}/read", headers=TECH)
        assert wrong_owner.status_code == 404

        marked = await client.post(f"/notifications/{unread[0]['id']}/read", headers=USER)
        assert marked.json()["success"] is True
        assert (await client.get("/notifications/unread", headers=USER)).json() == []

        metrics = (await client.get(f"/remote-sessions/{session_id}/metrics", headers=USER)).json()
        assert metrics["message_count"] == 1
        assert metrics["escalation_risk"] == "low"
        assert metrics["stale"] is False

    @pytest.mark.asyncio
    async def test_escalation(self, client):
        session_id = await self._active(client)

        escalated = await client.post(
            f"/remote-sessions/{session_id}/escalate",
            json={"escalation_type": "supervisor_request", "reason": "Needs admin"},
            headers=USER,
        )
        assert escalated.status_code == 201
        assert escalated.json()["event_type"] == "escalation_triggered"

        status = (await client.get(f"/remote-sessions/{session_id}/escalations", headers=TECH)).json()
        assert status["triggered_rules"] == []
        assert len(status["history"]) == 1

        messages = (await client.get(f"/remote-sessions/{session_id}/messages", headers=TECH)).json()
        assert messages[-1]["sender_type"] == "system"

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, client):
        session_id = await self._active(client)
        response = await client.get(f"/remote-sessions/{session_id}", headers={"X-User-ID": "eve"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_metrics_of_completed_session_not_tracked(self, client, app):
        session_id = await self._active(client)
        await client.post(f"/remote-sessions/{session_id}/complete", headers=TECH)

        metrics = await client.get(f"/remote-sessions/{session_id}/metrics", headers=TECH)
        escalations = await client.get(f"/remote-sessions/{session_id}/escalations", headers=TECH)

        assert metrics.status_code == 200
        assert escalations.status_code == 200
        assert session_id not in app.state.session_tracker.tracked_sessions

    @pytest.mark.asyncio
    async def test_invalid_transition_is_409(self, client):
        session_id = await self._active(client)
        await client.post(f"/remote-sessions/{session_id}/complete", headers=TECH)
        response = await client.post(f"/remote-sessions/{session_id}/start", headers=TECH)
        assert response.status_code == 409


class TestMFAAPI:

    @pytest.mark.asyncio
    async def test_issue_and_reject_wrong_code(self, client):
        issued = await client.post("/mfa/codes", json={"email": "Dana@Example.com"})
        assert issued.status_code == 202
        body = issued.json()
        assert body["email"] == "dana@example.com"
        assert "code" not in body
        assert "token" not in body

        verified = await client.post(
            "/mfa/verify", json={"email": "dana@example.com", "code": "000000"}
        )
        assert verified.status_code == 200
        assert verified.json()["success"] is False
        assert verified.json()["reason"] == "invalid"

    @pytest.mark.asyncio
    async def test_failed_dispatch_leaves_no_usable_code(self, client, app):
        sent = {}

        async def fail(email, code, ttl_minutes):
            sent["code"] = code
            raise ExternalServiceException("email-function", "request failed")

        app.state.email_dispatcher = AsyncMock()
        app.state.email_dispatcher.send_code.side_effect = fail

        issued = await client.post("/mfa/codes", json={"email": "dana@example.com"})
        assert issued.status_code == 502

        verified = await client.post(
            "/mfa/verify", json={"email": "dana@example.com", "code": sent["code"]}
        )
        assert verified.json()["reason"] == "invalid"

    @pytest.mark.asyncio
    async def test_bad_email_is_422(self, client):
        response = await client.post("/mfa/codes", json={"email": "nope"})
        assert response.status_code == 422


class TestNotificationWebsocket:

    @pytest.fixture
    def ws_client(self):
        from itsm_portal.main import app, init_services

        init_services(app)
        # Not entered as a context manager, so the lifespan does not run
        yield TestClient(app)
        app.state.change_feed.close_all()

    def test_rejects_anonymous_client(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect("/notifications/ws") as websocket:
                websocket.receive_json()
        assert exc_info.value.code == 4001

    def test_connected_message(self, ws_client):
        with ws_client.websocket_connect("/notifications/ws?user_id=user-9") as websocket:
            greeting = websocket.receive_json()
        assert greeting["type"] == "connected"
