from types import SimpleNamespace

import pytest
import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bizos.middleware import rate_limit
from bizos.middleware.rate_limit import RateLimitMiddleware

TENANT = SimpleNamespace(id="t-1", slug="northwind", rate_limit_per_minute=60, rate_limit_burst=2)


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def hset(self, key, mapping):
        self.ops.append((key, {k: str(v) for k, v in mapping.items()}))

    def expire(self, key, seconds):
        pass

    def execute(self):
        for key, mapping in self.ops:
            self.store.setdefault(key, {}).update(mapping)


class FakeRedis:
    """Just enough of redis.Redis (decode_responses=True) for the token bucket."""

    def __init__(self, broken=False):
        self.store = {}
        self.broken = broken

    def ping(self):
        return True

    def hgetall(self, key):
        if self.broken:
            raise redis.ConnectionError("redis went away")
        return dict(self.store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self.store)


@pytest.fixture
def enabled(monkeypatch):
    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", True)


def use_redis(monkeypatch, fake):
    monkeypatch.setattr(rate_limit.redis, "from_url", lambda *args, **kwargs: fake)


def build_client() -> TestClient:
    app = FastAPI()

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware)

    @app.middleware("http")
    async def set_tenant(request, call_next):
        request.state.tenant = TENANT
        return await call_next(request)

    return TestClient(app)


def test_over_the_limit_gets_429(enabled, monkeypatch):
    use_redis(monkeypatch, FakeRedis())
    client = build_client()

    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200

    limited = client.get("/ping")
    assert limited.status_code == 429
    assert limited.json()["type"] == "rate_limit_exceeded"
    assert int(limited.headers["Retry-After"]) >= 1


def test_disabled_never_touches_redis(monkeypatch):
    def connect(*args, **kwargs):
        raise AssertionError("redis should not be contacted")

    monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(rate_limit.redis, "from_url", connect)
    client = build_client()

    for _ in range(5):
        assert client.get("/ping").status_code == 200


def test_unreachable_redis_at_startup_fails_open(enabled, monkeypatch):
    class Unreachable(FakeRedis):
        def ping(self):
            raise redis.ConnectionError("connection refused")

    use_redis(monkeypatch, Unreachable())
    client = build_client()

    for _ in range(5):
        assert client.get("/ping").status_code == 200


def test_redis_errors_while_serving_fail_open(enabled, monkeypatch):
    use_redis(monkeypatch, FakeRedis(broken=True))
    client = build_client()

    for _ in range(5):
        assert client.get("/ping").status_code == 200


def test_tenant_override_sets_burst(enabled, monkeypatch):
    fake = FakeRedis()
    use_redis(monkeypatch, fake)
    middleware = RateLimitMiddleware(app=None)
    roomy = SimpleNamespace(id="t-2", slug="contoso", rate_limit_per_minute=600, rate_limit_burst=5)

    results = [middleware._check_rate_limit(roomy)[0] for _ in range(6)]

    assert results[:5] == [True] * 5
    assert float(fake.store["rate_limit:t-2"]["tokens"]) < 1
