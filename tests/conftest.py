"""
Test configuration and fixtures.

Provides:
- A throwaway SQLite database, recreated for every test
- A tenant with admin/member/viewer users, plus a second tenant
- Bearer-token headers for each user
- A WorkflowDispatcher backed by httpx.MockTransport that records calls
- A TestClient with the dispatcher dependency overridden
"""
import json
import os
import tempfile

# Settings are cached at import time, so configure before importing bizos
_DB_PATH = os.path.join(tempfile.gettempdir(), f"bizos_test_{os.getpid()}.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "False"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SCHEDULER_SECRET"] = "test-scheduler-secret"
os.environ["WORKFLOW_EXECUTOR_URL"] = "http://executor.test/api/v1/workflow-runs"

from typing import Generator, List

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bizos.main import app
from bizos.database import Base, engine, SessionLocal
from bizos.models import Tenant, User
from bizos.models.user import UserRole
from bizos.core.security import create_access_token, get_password_hash
from bizos.services.dispatcher import WorkflowDispatcher, get_dispatcher
from bizos.services.event_bus import seed_event_types

SCHEDULER_SECRET = os.environ["SCHEDULER_SECRET"]
EXECUTOR_URL = os.environ["WORKFLOW_EXECUTOR_URL"]
PASSWORD = "correct-horse-battery"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="session")
def password_hash() -> str:
    """bcrypt is slow; hash the shared test password once."""
    return get_password_hash(PASSWORD)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    seed_event_types(session)

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


def _make_tenant(db: Session, slug: str) -> Tenant:
    tenant = Tenant(
        name=slug.title(),
        slug=slug,
        subdomain=slug,
        admin_email=f"admin@{slug}.example",
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def _make_user(db: Session, tenant: Tenant, role: UserRole, password_hash: str) -> User:
    user = User(
        tenant_id=tenant.id,
        email=f"{role.value}@{tenant.slug}.example",
        hashed_password=password_hash,
        full_name=f"{role.value.title()} User",
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def tenant(db: Session) -> Tenant:
    return _make_tenant(db, "northwind")


@pytest.fixture
def other_tenant(db: Session) -> Tenant:
    return _make_tenant(db, "contoso")


@pytest.fixture
def admin(db: Session, tenant: Tenant, password_hash: str) -> User:
    return _make_user(db, tenant, UserRole.ADMIN, password_hash)


@pytest.fixture
def member(db: Session, tenant: Tenant, password_hash: str) -> User:
    return _make_user(db, tenant, UserRole.MEMBER, password_hash)


@pytest.fixture
def viewer(db: Session, tenant: Tenant, password_hash: str) -> User:
    return _make_user(db, tenant, UserRole.VIEWER, password_hash)


@pytest.fixture
def other_admin(db: Session, other_tenant: Tenant, password_hash: str) -> User:
    return _make_user(db, other_tenant, UserRole.ADMIN, password_hash)


def auth_headers(user: User, tenant: Tenant) -> dict:
    token = create_access_token({
        "sub": user.id,
        "tenant_id": user.tenant_id,
        "role": user.role.value,
    })
    return {"Authorization": f"Bearer {token}", "X-Tenant-Slug": tenant.slug}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def admin_headers(admin: User, tenant: Tenant) -> dict:
    return auth_headers(admin, tenant)


@pytest.fixture
def member_headers(member: User, tenant: Tenant) -> dict:
    return auth_headers(member, tenant)


@pytest.fixture
def viewer_headers(viewer: User, tenant: Tenant) -> dict:
    return auth_headers(viewer, tenant)


# =============================================================================
# Outbound dispatch
# =============================================================================

class RecordingExecutor:
    """MockTransport handler that records requests and answers with ``status_code``."""

    def __init__(self, status_code: int = 202):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    def bodies(self) -> list:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def dispatcher(executor: RecordingExecutor) -> Generator[WorkflowDispatcher, None, None]:
    d = WorkflowDispatcher(
        executor_url=EXECUTOR_URL,
        secret=SCHEDULER_SECRET,
        transport=httpx.MockTransport(executor),
    )
    yield d
    d.close()


# =============================================================================
# HTTP client
# =============================================================================

@pytest.fixture
def client(db: Session, dispatcher: WorkflowDispatcher) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()
