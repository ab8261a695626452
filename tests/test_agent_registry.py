import pytest

from bizos.core.security import AGENT_KEY_LENGTH, AGENT_KEY_PREFIX, hash_agent_api_key
from bizos.models.agent import Agent
from bizos.models.audit import AuditLog
from bizos.models.event import Event

REGISTRY = "/api/v1/agents/registry"


def register(client, headers, name="Intake Bot", agent_type="supervised"):
    response = client.post(REGISTRY, json={"name": name, "agent_type": agent_type}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def agent_headers(api_key, slug="northwind"):
    return {"X-Tenant-Slug": slug, "x-agent-key": api_key}


@pytest.fixture
def registered(client, admin_headers):
    return register(client, admin_headers)


@pytest.fixture
def active(client, admin_headers, registered):
    response = client.patch(
        f"{REGISTRY}/{registered['agent']['id']}/status",
        json={"status": "active"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    return registered


class TestRegistration:
    def test_key_is_returned_once_and_only_its_hash_is_stored(self, registered, db):
        api_key = registered["api_key"]
        agent = registered["agent"]

        assert api_key.startswith(AGENT_KEY_PREFIX)
        assert len(api_key) == AGENT_KEY_LENGTH
        assert agent["status"] == "inactive"
        assert agent["has_api_key"] is True
        assert agent["api_key_prefix"] == api_key[:len(AGENT_KEY_PREFIX) + 8] + "..."
        assert "api_key_hash" not in agent

        stored = db.query(Agent).filter(Agent.id == agent["id"]).one()
        assert stored.api_key_hash == hash_agent_api_key(api_key)
        assert api_key not in (stored.api_key_hash, stored.api_key_prefix)

    def test_registration_is_announced_and_audited(self, registered, db):
        event = db.query(Event).filter(Event.event_type == "agent.registered").one()
        assert event.payload["agent_id"] == registered["agent"]["id"]
        assert event.source_type == "user"
        assert db.query(AuditLog).filter(AuditLog.action == "agent.registered").count() == 1

    def test_member_cannot_register(self, client, member_headers):
        response = client.post(REGISTRY, json={"name": "Bot", "agent_type": "tool"}, headers=member_headers)
        assert response.status_code == 403

    def test_names_are_unique_per_tenant(self, client, admin_headers, registered):
        response = client.post(REGISTRY, json={"name": "Intake Bot", "agent_type": "tool"}, headers=admin_headers)
        assert response.status_code == 409

    def test_unknown_agent_type_is_rejected(self, client, admin_headers):
        response = client.post(REGISTRY, json={"name": "Bot", "agent_type": "rogue"}, headers=admin_headers)
        assert response.status_code == 422

    def test_members_can_list_but_not_see_other_tenants(self, client, registered, member_headers, other_admin, other_tenant, headers_for):
        listed = client.get(REGISTRY, headers=member_headers)
        assert [a["name"] for a in listed.json()] == ["Intake Bot"]

        foreign = client.get(f"{REGISTRY}/{registered['agent']['id']}", headers=headers_for(other_admin, other_tenant))
        assert foreign.status_code == 404


class TestAgentKeyAuth:
    def test_inactive_agent_cannot_authenticate(self, client, registered):
        response = client.get(f"{REGISTRY}/me", headers=agent_headers(registered["api_key"]))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or inactive API key"

    def test_active_agent_authenticates(self, client, active, db):
        response = client.get(f"{REGISTRY}/me", headers=agent_headers(active["api_key"]))

        assert response.status_code == 200
        assert response.json()["name"] == "Intake Bot"
        stored = db.query(Agent).filter(Agent.id == active["agent"]["id"]).one()
        assert stored.last_seen_at is not None

    @pytest.mark.parametrize("api_key", [None, "not-a-key", AGENT_KEY_PREFIX + "short"])
    def test_malformed_key_is_rejected(self, client, tenant, api_key):
        headers = {"X-Tenant-Slug": "northwind"}
        if api_key:
            headers["x-agent-key"] = api_key

        response = client.get(f"{REGISTRY}/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key format"

    def test_key_only_works_in_its_own_tenant(self, client, active, other_tenant):
        response = client.get(f"{REGISTRY}/me", headers=agent_headers(active["api_key"], "contoso"))
        assert response.status_code == 401

    def test_status_change_is_announced(self, client, admin_headers, active, db):
        suspended = client.patch(
            f"{REGISTRY}/{active['agent']['id']}/status",
            json={"status": "suspended"},
            headers=admin_headers,
        )
        assert suspended.json()["status"] == "suspended"

        changes = db.query(Event).filter(Event.event_type == "agent.status_changed").all()
        assert [(e.payload["from"], e.payload["to"]) for e in changes] == [
            ("inactive", "active"),
            ("active", "suspended"),
        ]
        assert client.get(f"{REGISTRY}/me", headers=agent_headers(active["api_key"])).status_code == 401


class TestKeyLifecycle:
    def test_rotation_invalidates_the_old_key(self, client, admin_headers, active, db):
        rotated = client.post(f"{REGISTRY}/{active['agent']['id']}/rotate-key", headers=admin_headers)

        assert rotated.status_code == 200
        new_key = rotated.json()["api_key"]
        assert new_key != active["api_key"]
        assert client.get(f"{REGISTRY}/me", headers=agent_headers(active["api_key"])).status_code == 401
        assert client.get(f"{REGISTRY}/me", headers=agent_headers(new_key)).status_code == 200
        assert db.query(AuditLog).filter(AuditLog.action == "agent.api_key_rotated").count() == 1

    def test_revocation_clears_the_key(self, client, admin_headers, active, db):
        revoked = client.post(f"{REGISTRY}/{active['agent']['id']}/revoke-key", headers=admin_headers)

        assert revoked.status_code == 200
        assert revoked.json()["has_api_key"] is False
        assert revoked.json()["api_key_prefix"] is None
        assert client.get(f"{REGISTRY}/me", headers=agent_headers(active["api_key"])).status_code == 401
        assert db.query(AuditLog).filter(AuditLog.action == "agent.api_key_revoked").count() == 1

    def test_only_admins_manage_keys(self, client, member_headers, registered):
        response = client.post(f"{REGISTRY}/{registered['agent']['id']}/rotate-key", headers=member_headers)
        assert response.status_code == 403


class TestAgentSubscribers:
    def subscribe(self, client, headers, subscriber_type, subscriber_id):
        return client.post(
            "/api/v1/events/subscriptions",
            json={"event_type": "contact.created", "subscriber_type": subscriber_type, "subscriber_id": subscriber_id},
            headers=headers,
        )

    def test_unknown_agent_cannot_subscribe(self, client, admin_headers):
        response = self.subscribe(client, admin_headers, "agent", "assistant")

        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown agent: assistant"

    def test_registered_agent_can_subscribe(self, client, admin_headers, registered):
        response = self.subscribe(client, admin_headers, "agent", registered["agent"]["id"])
        assert response.status_code == 201

    def test_agent_from_another_tenant_cannot_subscribe(self, client, registered, other_admin, other_tenant, headers_for):
        response = self.subscribe(client, headers_for(other_admin, other_tenant), "agent", registered["agent"]["id"])
        assert response.status_code == 400

    def test_unknown_workflow_cannot_subscribe(self, client, admin_headers):
        response = self.subscribe(client, admin_headers, "workflow", "no-such-workflow")
        assert response.status_code == 400
