from datetime import datetime, timedelta

from bizos.models.agent import AgentConfirmation


def open_session(client, headers):
    response = client.post("/api/v1/agents/sessions", json={"title": "Ops"}, headers=headers)
    assert response.status_code == 201
    return response.json()


class TestSessions:
    def test_commands_bump_message_count(self, client, member_headers):
        session = open_session(client, member_headers)

        for text in ("hello", "summarise my tasks"):
            response = client.post(
                f"/api/v1/agents/sessions/{session['id']}/commands",
                json={"content": text},
                headers=member_headers,
            )
            assert response.status_code == 201
            assert response.json()["status"] == "pending"

        fetched = client.get(f"/api/v1/agents/sessions/{session['id']}", headers=member_headers).json()
        assert fetched["message_count"] == 2
        assert fetched["last_message_at"] is not None

        commands = client.get(f"/api/v1/agents/sessions/{session['id']}/commands", headers=member_headers).json()
        assert [c["content"] for c in commands] == ["hello", "summarise my tasks"]

    def test_sessions_are_private(self, client, member_headers, admin_headers):
        session = open_session(client, member_headers)

        assert client.get(f"/api/v1/agents/sessions/{session['id']}", headers=admin_headers).status_code == 404
        assert client.get("/api/v1/agents/sessions", headers=admin_headers).json() == []


class TestConfirmations:
    def request(self, client, headers, session_id, **extra):
        response = client.post(
            "/api/v1/confirmations",
            json={
                "session_id": session_id,
                "tool_name": "send_email",
                "tool_input": {"to": "team@northwind.example"},
                "description": "Email the weekly report",
                **extra,
            },
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    def test_inbox_badge_and_approval(self, client, member_headers):
        session = open_session(client, member_headers)
        confirmation = self.request(client, member_headers, session["id"])

        pending = client.get("/api/v1/confirmations/pending", headers=member_headers).json()
        assert [c["id"] for c in pending] == [confirmation["id"]]
        assert pending[0]["expires_label"] == "5m left"

        badge = client.get("/api/v1/confirmations/badge", headers=member_headers).json()
        assert badge == {"count": 1, "label": "1"}

        approved = client.post(
            f"/api/v1/confirmations/{confirmation['id']}/respond",
            json={"approved": True},
            headers=member_headers,
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        again = client.post(
            f"/api/v1/confirmations/{confirmation['id']}/respond",
            json={"approved": False},
            headers=member_headers,
        )
        assert again.status_code == 409

        badge = client.get("/api/v1/confirmations/badge", headers=member_headers).json()
        assert badge == {"count": 0, "label": ""}

    def test_badge_caps_at_nine(self, client, member_headers):
        session = open_session(client, member_headers)
        for _ in range(10):
            self.request(client, member_headers, session["id"])

        badge = client.get("/api/v1/confirmations/badge", headers=member_headers).json()
        assert badge == {"count": 10, "label": "9+"}

    def test_custom_expiry(self, client, member_headers):
        session = open_session(client, member_headers)
        confirmation = self.request(client, member_headers, session["id"], expires_in_minutes=30)

        created = datetime.fromisoformat(confirmation["created_at"])
        expires = datetime.fromisoformat(confirmation["expires_at"])
        assert expires - created == timedelta(minutes=30)

    def test_viewer_cannot_respond(self, client, member_headers, viewer_headers):
        session = open_session(client, member_headers)
        confirmation = self.request(client, member_headers, session["id"])

        response = client.post(
            f"/api/v1/confirmations/{confirmation['id']}/respond",
            json={"approved": True},
            headers=viewer_headers,
        )
        assert response.status_code == 403

    def test_admin_expire_sweep(self, client, db, member_headers, admin_headers):
        session = open_session(client, member_headers)
        confirmation = self.request(client, member_headers, session["id"])

        row = db.query(AgentConfirmation).filter(AgentConfirmation.id == confirmation["id"]).one()
        row.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        assert client.get("/api/v1/confirmations/pending", headers=member_headers).json() == []
        assert client.post("/api/v1/confirmations/expire", headers=member_headers).status_code == 403

        swept = client.post("/api/v1/confirmations/expire", headers=admin_headers)
        assert swept.json() == {"expired_count": 1}

    def test_unknown_session(self, client, member_headers):
        response = client.post(
            "/api/v1/confirmations",
            json={"session_id": "missing", "tool_name": "x", "description": "y"},
            headers=member_headers,
        )
        assert response.status_code == 404
