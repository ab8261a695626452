from bizos.models.audit import AuditLog
from bizos.models.user import User


def new_user(client, headers, email="ops@northwind.example", role="member"):
    response = client.post(
        "/api/v1/users",
        json={"email": email, "password": "correct-horse-battery", "role": role},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestUserAdmin:
    def test_only_admins_create_users(self, client, member_headers):
        response = client.post(
            "/api/v1/users",
            json={"email": "x@northwind.example", "password": "correct-horse-battery"},
            headers=member_headers,
        )
        assert response.status_code == 403

    def test_admin_cannot_delete_own_account(self, client, admin, admin_headers):
        response = client.delete(f"/api/v1/users/{admin.id}", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete your own account"

    def test_admin_deletes_user_and_audits(self, client, admin_headers, member, db):
        response = client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)

        assert response.status_code == 204
        assert db.query(User).filter(User.id == member.id).first() is None
        assert db.query(AuditLog).filter(AuditLog.action == "user.deleted").count() == 1

    def test_last_active_admin_cannot_demote_or_deactivate_self(self, client, admin, admin_headers):
        url = f"/api/v1/users/{admin.id}"

        assert client.patch(url, json={"role": "member"}, headers=admin_headers).status_code == 400
        assert client.patch(url, json={"is_active": False}, headers=admin_headers).status_code == 400
        assert client.patch(url, json={"full_name": "Still Admin"}, headers=admin_headers).status_code == 200

    def test_admin_can_step_down_when_another_admin_exists(self, client, admin, admin_headers):
        new_user(client, admin_headers, email="second@northwind.example", role="admin")

        response = client.patch(f"/api/v1/users/{admin.id}", json={"role": "member"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["role"] == "member"


class TestSelfService:
    def test_member_updates_own_name(self, client, member, member_headers):
        response = client.patch(
            f"/api/v1/users/{member.id}",
            json={"full_name": "Sam Okafor"},
            headers=member_headers,
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Sam Okafor"

    def test_member_cannot_change_own_role(self, client, member, member_headers):
        response = client.patch(f"/api/v1/users/{member.id}", json={"role": "admin"}, headers=member_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Only admins can change user roles"

    def test_member_cannot_change_own_active_flag(self, client, member, member_headers):
        response = client.patch(f"/api/v1/users/{member.id}", json={"is_active": False}, headers=member_headers)

        assert response.status_code == 403

    def test_member_cannot_edit_someone_else(self, client, viewer, member_headers):
        response = client.patch(f"/api/v1/users/{viewer.id}", json={"full_name": "Nope"}, headers=member_headers)

        assert response.status_code == 403

    def test_null_role_is_rejected(self, client, member, admin_headers):
        response = client.patch(f"/api/v1/users/{member.id}", json={"role": None}, headers=admin_headers)

        assert response.status_code == 422
