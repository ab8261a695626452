"""
Authentication Endpoints

Both routes name their tenant by slug in the request body, so the tenant
middleware lets them through without a tenant header.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional

from bizos.database import get_db
from bizos.models.user import User, UserRole
from bizos.models.tenant import Tenant
from bizos.models.audit import record_audit
from bizos.schemas.auth import LoginRequest, Token, RegisterRequest
from bizos.schemas.user import UserResponse
from bizos.core.security import verify_password, get_password_hash, create_access_token
from bizos.core.exceptions import AuthenticationError, TenantNotFoundError
from bizos.config import get_settings
from bizos.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])

INVALID_CREDENTIALS = "Invalid credentials"


def _reject_login(reason: str, detail: str = INVALID_CREDENTIALS, **context) -> AuthenticationError:
    log_security_event("failed_login", {"reason": reason, **context}, logger)
    return AuthenticationError(detail)


def _find_user(db: Session, tenant_id: str, email: str) -> Optional[User]:
    return db.query(User).filter(
        User.tenant_id == tenant_id,
        User.email == email
    ).first()


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Exchange tenant slug, email and password for a bearer token.

    An unknown tenant, unknown email and wrong password all answer
    "Invalid credentials".
    """
    tenant = db.query(Tenant).filter(Tenant.slug == credentials.tenant_slug).first()
    if not tenant:
        raise _reject_login("tenant_not_found", tenant_slug=credentials.tenant_slug)
    if not tenant.is_active:
        raise _reject_login("tenant_inactive", "Tenant account is inactive", tenant_id=tenant.id)

    user = _find_user(db, tenant.id, credentials.email)
    if user is None:
        raise _reject_login("user_not_found", email=credentials.email, tenant_id=tenant.id)
    if not verify_password(credentials.password, user.hashed_password):
        raise _reject_login("invalid_password", email=credentials.email, tenant_id=tenant.id)
    if not user.is_active:
        raise _reject_login("user_inactive", "User account is inactive", user_id=user.id)

    access_token = create_access_token(
        {
            "sub": user.id,
            "tenant_id": tenant.id,
            "role": user.role.value,
            "email": user.email,
        },
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    user.last_login_at = datetime.utcnow()
    db.commit()

    logger.info(f"Login ok: user={user.id} tenant={tenant.id}")

    return Token(access_token=access_token, tenant_id=tenant.id, role=user.role)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Self-registration. The new user is an unverified MEMBER."""
    tenant = db.query(Tenant).filter(Tenant.slug == registration.tenant_slug).first()
    if not tenant:
        raise TenantNotFoundError()
    if not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant is not accepting new registrations"
        )

    if _find_user(db, tenant.id, registration.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with this email already exists in this tenant"
        )

    user = User(
        tenant_id=tenant.id,
        email=registration.email,
        hashed_password=get_password_hash(registration.password),
        full_name=registration.full_name,
        role=UserRole.MEMBER,
        is_verified=False
    )
    db.add(user)
    db.flush()

    record_audit(
        db,
        action="user.registered",
        resource_type="user",
        resource_id=user.id,
        tenant_id=tenant.id,
        actor_type="user",
        actor_id=user.id,
    )
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id} in tenant {tenant.id}")

    return user
