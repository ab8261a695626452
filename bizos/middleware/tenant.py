"""
Tenant Middleware

Resolves the tenant for every request and stores it on request.state, where
deps.get_current_tenant picks it up.

Resolution order:
1. X-Tenant-Slug header (API clients, the dispatcher)
2. Subdomain of the Host header (northwind.bizos.app -> "northwind")
3. X-Tenant-ID header

Login and registration name their tenant in the body. Scheduler tick and
cleanup run across all tenants. All four are excluded, as are
health and documentation routes.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from bizos.database import SessionLocal
from bizos.models.tenant import Tenant
from bizos.core.exceptions import TenantNotFoundError

logger = logging.getLogger(__name__)

EXCLUDED_PREFIXES = (
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
)

EXCLUDED_PATHS = (
    "/",
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/scheduler/tick",
    "/api/v1/scheduler/cleanup",
)

NON_TENANT_SUBDOMAINS = ("www", "api", "app")


def is_excluded_path(path: str) -> bool:
    return path in EXCLUDED_PATHS or path.startswith(EXCLUDED_PREFIXES)


class TenantMiddleware(BaseHTTPMiddleware):
    """Extract and validate the tenant before any route runs."""

    async def dispatch(self, request: Request, call_next):
        if is_excluded_path(request.url.path):
            return await call_next(request)

        tenant_identifier = self._extract_tenant_identifier(request)

        if not tenant_identifier:
            logger.warning(f"No tenant identifier in request: {request.url.path}")
            return JSONResponse(
                status_code=400,
                content={"detail": "Tenant identifier required (subdomain or X-Tenant-Slug header)"}
            )

        # NOTE: One query per request; cache in Redis if this shows up in profiles
        db = SessionLocal()
        try:
            tenant = self._load_tenant(db, tenant_identifier)
        finally:
            db.close()

        if not tenant:
            # Exception handlers do not see errors raised in middleware
            logger.warning(f"Tenant not found: {tenant_identifier}")
            exc = TenantNotFoundError(tenant_identifier)
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

        if not tenant.is_active:
            logger.warning(f"Inactive tenant attempted access: {tenant_identifier}")
            return JSONResponse(
                status_code=403,
                content={"detail": "Tenant account is inactive"}
            )

        request.state.tenant = tenant
        request.state.tenant_id = tenant.id

        logger.debug(f"Request for tenant: {tenant.slug} ({tenant.id})")

        return await call_next(request)

    def _extract_tenant_identifier(self, request: Request) -> Optional[str]:
        tenant_slug = request.headers.get("X-Tenant-Slug")
        if tenant_slug:
            return tenant_slug

        host = request.headers.get("Host", "").split(":")[0]
        parts = host.split(".")
        if len(parts) >= 3 and parts[0] not in NON_TENANT_SUBDOMAINS:
            return parts[0]

        return request.headers.get("X-Tenant-ID")

    def _load_tenant(self, db: Session, identifier: str) -> Optional[Tenant]:
        """Look the identifier up as slug, then subdomain, then id."""
        for column in (Tenant.slug, Tenant.subdomain, Tenant.id):
            tenant = db.query(Tenant).filter(column == identifier).first()
            if tenant:
                return tenant
        return None
