from conftest import PASSWORD

from bizos.core.security import decode_access_token, verify_scheduler_secret


def test_login_returns_tenant_scoped_token(client, tenant, member):
    response = client.post("/api/v1/auth/login", json={
        "email": member.email,
        "password": PASSWORD,
        "tenant_slug": tenant.slug,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["tenant_id"] == tenant.id
    assert body["role"] == "member"

    claims = decode_access_token(body["access_token"])
    assert claims["sub"] == member.id
    assert claims["tenant_id"] == tenant.id


def test_login_rejects_wrong_password(client, tenant, member):
    response = client.post("/api/v1/auth/login", json={
        "email": member.email,
        "password": "wrong-password",
        "tenant_slug": tenant.slug,
    })
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_login_in_wrong_tenant_looks_like_bad_credentials(client, other_tenant, member):
    response = client.post("/api/v1/auth/login", json={
        "email": member.email,
        "password": PASSWORD,
        "tenant_slug": other_tenant.slug,
    })
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_register_creates_member(client, tenant):
    response = client.post("/api/v1/auth/register", json={
        "email": "new@northwind.example",
        "password": PASSWORD,
        "full_name": "New Person",
        "tenant_slug": tenant.slug,
    })
    assert response.status_code == 201
    assert response.json()["role"] == "member"

    duplicate = client.post("/api/v1/auth/register", json={
        "email": "new@northwind.example",
        "password": PASSWORD,
        "full_name": "New Person",
        "tenant_slug": tenant.slug,
    })
    assert duplicate.status_code == 400


def test_missing_tenant_identifier(client, member_headers):
    headers = {"Authorization": member_headers["Authorization"]}
    response = client.get("/api/v1/workflows", headers=headers)
    assert response.status_code == 400


def test_unknown_tenant(client, member_headers):
    response = client.get("/api/v1/workflows", headers={**member_headers, "X-Tenant-Slug": "nobody"})
    assert response.status_code == 404


def test_token_from_another_tenant_is_refused(client, other_tenant, member_headers):
    response = client.get("/api/v1/workflows", headers={**member_headers, "X-Tenant-Slug": other_tenant.slug})
    assert response.status_code == 403
    assert response.json()["type"] == "tenant_isolation_error"


def test_garbage_token(client, tenant):
    response = client.get(
        "/api/v1/workflows",
        headers={"Authorization": "Bearer nope", "X-Tenant-Slug": tenant.slug},
    )
    assert response.status_code == 401


def test_health_needs_no_tenant(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert client.get("/").status_code == 200


def test_verify_scheduler_secret():
    assert verify_scheduler_secret("s3cret", expected="s3cret")
    assert not verify_scheduler_secret("nope", expected="s3cret")
    assert not verify_scheduler_secret(None, expected="s3cret")
    assert not verify_scheduler_secret("", expected="")
