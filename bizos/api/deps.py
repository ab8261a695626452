"""
API Dependencies

Reusable FastAPI dependencies for tenant context, authentication, role
checks, agent API keys and the scheduler shared secret.
"""
from typing import Optional
from fastapi import Depends, HTTPException, status, Request, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from bizos.database import get_db
from bizos.models.user import User, UserRole
from bizos.models.tenant import Tenant
from bizos.models.agent import Agent
from bizos.core.security import decode_access_token, is_agent_key_format, verify_scheduler_secret
from bizos.core.exceptions import AuthenticationError, TenantIsolationError, SchedulerAuthError
from bizos.utils.logging import get_logger, log_security_event
from bizos.services.agent_registry import authenticate_agent

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer()


def get_current_tenant(request: Request) -> Tenant:
    """
    Get current tenant from request state.

    Set by TenantMiddleware; its absence means the middleware was bypassed.
    """
    tenant = getattr(request.state, "tenant", None)
    if not tenant:
        logger.error("No tenant in request state - middleware may have failed")
        raise TenantIsolationError("Tenant context not available")
    return tenant


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant)
) -> User:
    """
    Get current authenticated user.

    1. Validates the JWT
    2. Verifies the token was minted for the request tenant
    3. Loads the user from that tenant and checks it is active
    """
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    token_tenant_id = payload.get("tenant_id")

    if not user_id:
        raise AuthenticationError("Invalid token payload")

    if token_tenant_id != tenant.id:
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": user_id, "token_tenant": token_tenant_id, "request_tenant": tenant.id},
            logger
        )
        raise TenantIsolationError("Token tenant mismatch")

    user = db.query(User).filter(
        User.id == user_id,
        User.tenant_id == tenant.id
    ).first()

    if not user:
        logger.warning(f"User not found: {user_id} in tenant {tenant.id}")
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    request.state.user_id = user.id
    return user


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Require admin role."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user


async def require_member(
    current_user: User = Depends(get_current_user)
) -> User:
    """Require member role or higher."""
    if not current_user.has_permission(UserRole.MEMBER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Member privileges required"
        )
    return current_user


async def require_scheduler_secret(
    request: Request,
    x_scheduler_secret: Optional[str] = Header(None, alias="x-scheduler-secret")
) -> None:
    """
    Authenticate calls from the scheduler and the dispatcher.

    These machine-to-machine calls carry the shared SCHEDULER_SECRET instead
    of a user token.
    """
    if not verify_scheduler_secret(x_scheduler_secret):
        log_security_event(
            "scheduler_secret_rejected",
            {"path": request.url.path, "header_present": x_scheduler_secret is not None},
            logger
        )
        raise SchedulerAuthError()


async def get_current_agent(
    request: Request,
    x_agent_key: Optional[str] = Header(None, alias="x-agent-key"),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant)
) -> Agent:
    """
    Authenticate a registered agent by its API key.

    Only active agents of the request tenant get through.
    """
    if not is_agent_key_format(x_agent_key):
        log_security_event(
            "agent_auth_failed",
            {"reason": "malformed_key", "tenant_id": tenant.id, "path": request.url.path},
            logger
        )
        raise AuthenticationError("Invalid API key format")

    agent = authenticate_agent(db, tenant.id, x_agent_key)
    if not agent:
        log_security_event(
            "agent_auth_failed",
            {"reason": "unknown_or_inactive", "tenant_id": tenant.id, "path": request.url.path},
            logger
        )
        raise AuthenticationError("Invalid or inactive API key")

    request.state.agent_id = agent.id
    return agent
