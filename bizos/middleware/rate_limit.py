"""
Rate Limiting Middleware

Per-tenant token bucket kept in Redis. Tenants may carry their own
rate_limit_per_minute / rate_limit_burst; otherwise the settings defaults
apply.

If Redis is unreachable, or RATE_LIMIT_ENABLED is false, requests pass
through unlimited.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Tuple
import redis
import time
import logging

from bizos.config import get_settings
from bizos.core.exceptions import RateLimitExceeded
from bizos.middleware.tenant import is_excluded_path

logger = logging.getLogger(__name__)
settings = get_settings()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiter per tenant."""

    def __init__(self, app):
        super().__init__(app)
        self.redis_client = None
        self.redis_available = False

        if not settings.RATE_LIMIT_ENABLED:
            logger.info("Rate limiting disabled by configuration")
            return

        try:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connection established for rate limiting")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            # Fail open: availability over strict limiting
            logger.error(f"Redis connection failed, rate limiting off: {e}")

    async def dispatch(self, request: Request, call_next):
        if not self.redis_available or is_excluded_path(request.url.path):
            return await call_next(request)

        # Set by TenantMiddleware
        tenant = getattr(request.state, "tenant", None)
        if not tenant:
            return await call_next(request)

        allowed, retry_after = self._check_rate_limit(tenant)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for tenant {tenant.slug}",
                extra={"tenant_id": tenant.id}
            )
            exc = RateLimitExceeded(retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "detail": exc.detail,
                    "type": "rate_limit_exceeded",
                    "retry_after": retry_after
                },
                headers=exc.headers
            )

        return await call_next(request)

    def _check_rate_limit(self, tenant) -> Tuple[bool, int]:
        """
        Take one token from the tenant's bucket.

        Returns (allowed, retry_after_seconds). The bucket holds ``burst``
        tokens and refills at ``per_minute`` tokens per minute. State lives
        in one Redis hash that expires after a minute of inactivity.
        """
        per_minute = tenant.rate_limit_per_minute or settings.RATE_LIMIT_PER_MINUTE
        burst = tenant.rate_limit_burst or settings.RATE_LIMIT_BURST
        refill_per_second = per_minute / 60.0
        key = f"rate_limit:{tenant.id}"
        now = time.time()

        try:
            bucket = self.redis_client.hgetall(key)
            if bucket:
                elapsed = now - float(bucket.get("ts", now))
                tokens = min(burst, float(bucket.get("tokens", burst)) + elapsed * refill_per_second)
            else:
                tokens = float(burst)

            if tokens < 1:
                return False, int((1 - tokens) / refill_per_second) + 1

            pipe = self.redis_client.pipeline()
            pipe.hset(key, mapping={"tokens": tokens - 1, "ts": now})
            pipe.expire(key, 60)
            pipe.execute()
            return True, 0

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0
